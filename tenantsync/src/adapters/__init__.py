from .base import DataStore, Filter
from .postgrest_store import PostgRESTStore
from .sqlite_store import SQLiteStore

__all__ = [
    'DataStore',
    'Filter',
    'PostgRESTStore',
    'SQLiteStore',
]
