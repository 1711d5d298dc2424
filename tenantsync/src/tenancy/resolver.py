# filepath: tenantsync/src/tenancy/resolver.py

"""Environment resolver: which tenant database is this process bound to?"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Dict
from urllib.parse import urlparse

from tenantsync.src.adapters.base import DataStore
from tenantsync.src.exceptions import ConfigurationError, ConnectivityError, SchemaConflictError

logger = logging.getLogger(__name__)

SUPABASE_HOST = re.compile(r'^https?://([^.]+)\.supabase\.co', re.IGNORECASE)

# Known hospital projects; overridable via the ``tenants`` block of sync.yaml
KNOWN_TENANTS = {
    'oghqwddhojnryovmfvzc': 'Valant',
    'btoeupnfqkioxigrheyp': 'Madhuban',
}


@dataclass(frozen=True)
class TenantBinding:
    """Identifies which logical database a process is talking to."""
    tenant_id: str
    endpoint_url: str
    credential_ref: str
    access_key: str = field(default='', repr=False, compare=False)


@dataclass
class BindingStatus:
    """Outcome of a live binding check."""
    configured_tenant_id: str
    connected: bool
    observed_tenant_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def mismatched(self) -> bool:
        """Connected, but to a different tenant than configured."""
        return (self.connected and self.observed_tenant_id is not None
                and self.observed_tenant_id != self.configured_tenant_id)

    def to_dict(self) -> Dict:
        return {
            'configured_tenant_id': self.configured_tenant_id,
            'connected': self.connected,
            'observed_tenant_id': self.observed_tenant_id,
            'error': self.error,
            'mismatched': self.mismatched,
        }


def sqlite_path(endpoint_url: str) -> Path:
    """``sqlite:///rel.db`` is relative, ``sqlite:////abs/x.db`` absolute."""
    path = urlparse(endpoint_url.strip()).path
    return Path(path[1:])


def extract_tenant_id(endpoint_url: str) -> str:
    """Pull the stable tenant token out of an endpoint URL.

    ``https://<ref>.supabase.co`` -> ``<ref>``; any other http(s) URL -> first
    host label; ``sqlite:///path/name.db`` -> ``name``.
    """
    url = endpoint_url.strip()
    match = SUPABASE_HOST.match(url)
    if match:
        return match.group(1)

    parsed = urlparse(url)
    if parsed.scheme == 'sqlite':
        stem = sqlite_path(url).stem
        if stem:
            return stem
    elif parsed.scheme in ('http', 'https') and parsed.hostname:
        return parsed.hostname.split('.')[0]

    raise ConfigurationError(f"Cannot derive a tenant id from endpoint URL: {endpoint_url!r}")


def resolve_binding(config: Mapping[str, Optional[str]], prefix: str = '') -> TenantBinding:
    """Resolve the tenant binding from ``{prefix}SUPABASE_URL`` / ``{prefix}SUPABASE_KEY``.

    Raises:
        ConfigurationError: when either value is absent or the URL is malformed
    """
    url_key = f"{prefix}SUPABASE_URL"
    cred_key = f"{prefix}SUPABASE_KEY"

    endpoint_url = (config.get(url_key) or '').strip()
    access_key = (config.get(cred_key) or '').strip()

    missing = [name for name, value in ((url_key, endpoint_url), (cred_key, access_key)) if not value]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    tenant_id = extract_tenant_id(endpoint_url)
    logger.info(f"Resolved binding {url_key} -> tenant {tenant_id}")
    return TenantBinding(
        tenant_id=tenant_id,
        endpoint_url=endpoint_url,
        credential_ref=cred_key,
        access_key=access_key,
    )


def verify_binding(binding: TenantBinding, store: DataStore, probe_table: str = 'patients') -> BindingStatus:
    """Run one read-only probe and report which tenant answered.

    Network and auth failures come back as ``connected=False``; nothing is raised.
    """
    try:
        observed = store.probe(probe_table)
    except (ConnectivityError, SchemaConflictError) as e:
        logger.warning(f"Binding probe against {binding.tenant_id} failed: {e}")
        return BindingStatus(
            configured_tenant_id=binding.tenant_id,
            connected=False,
            error=str(e),
        )

    status = BindingStatus(
        configured_tenant_id=binding.tenant_id,
        connected=True,
        observed_tenant_id=observed,
    )
    if status.mismatched:
        logger.error(f"Configured tenant {binding.tenant_id} but probe answered from {observed}")
    return status


def describe_tenant(tenant_id: Optional[str], labels: Optional[Mapping[str, str]] = None) -> str:
    """Human label for operator output, e.g. ``Valant (oghqwddhojnryovmfvzc)``."""
    if not tenant_id:
        return 'unknown'
    known = dict(KNOWN_TENANTS)
    if labels:
        known.update(labels)
    label = known.get(tenant_id)
    return f"{label} ({tenant_id})" if label else tenant_id
