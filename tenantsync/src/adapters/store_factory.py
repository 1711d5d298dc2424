# filepath: tenantsync/src/adapters/store_factory.py

import logging
from typing import Dict, Type, Optional
from urllib.parse import urlparse

from .base import DataStore
from .postgrest_store import PostgRESTStore
from .sqlite_store import SQLiteStore
from tenantsync.config import AppConfig
from tenantsync.src.exceptions import ConfigurationError
from tenantsync.src.tenancy.resolver import TenantBinding, sqlite_path

logger = logging.getLogger(__name__)


class StoreFactory:
    """Picks a data store implementation from the binding's URL scheme."""

    _stores: Dict[str, Type[DataStore]] = {
        'http': PostgRESTStore,
        'https': PostgRESTStore,
        'sqlite': SQLiteStore,
    }

    @classmethod
    def register_store(cls, scheme: str, store_class: Type[DataStore]):
        """Register a store class for a URL scheme."""
        cls._stores[scheme] = store_class
        logger.info(f"Registered store for scheme: {scheme}")

    @classmethod
    def open_store(cls, binding: TenantBinding, config: Optional[Type[AppConfig]] = None) -> DataStore:
        """Build the store for a resolved binding."""
        config = config or AppConfig
        scheme = urlparse(binding.endpoint_url).scheme.lower()
        store_class = cls._stores.get(scheme)
        if store_class is None:
            raise ConfigurationError(f"No data store for URL scheme {scheme!r}")

        if issubclass(store_class, SQLiteStore):
            return store_class(sqlite_path(binding.endpoint_url))

        return store_class(
            binding.endpoint_url,
            binding.access_key,
            timeout=config.REQUEST_TIMEOUT,
            max_retries=config.MAX_RETRIES,
            exec_rpc=config.EXEC_RPC,
        )


def open_store(binding: TenantBinding, config: Optional[Type[AppConfig]] = None) -> DataStore:
    """Convenience wrapper around StoreFactory.open_store."""
    return StoreFactory.open_store(binding, config)
