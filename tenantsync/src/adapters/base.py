# filepath: tenantsync/src/adapters/base.py
"""Base data-store capability consumed by the reconciler and sweeper."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

FILTER_OPS = ('eq', 'in', 'ilike')


@dataclass(frozen=True)
class Filter:
    """Single column predicate.

    ``ilike`` values are plain substrings; stores add their own wildcards.
    """
    column: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter op: {self.op}")

    def matches(self, row: Dict[str, Any]) -> bool:
        """Evaluate the filter against an in-memory row."""
        actual = row.get(self.column)
        if self.op == 'eq':
            return actual == self.value
        if self.op == 'in':
            return actual in self.value
        if actual is None:
            return False
        return str(self.value).lower() in str(actual).lower()


class DataStore(ABC):
    """Tabular data-access capability for one tenant.

    Implementations translate transport failures into ConnectivityError and
    rejected statements or relations into SchemaConflictError.
    """

    tenant_id: str = "unknown"

    @abstractmethod
    def select(self, table: str, filters: Optional[List[Filter]] = None,
               match_any: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return rows of ``table`` matching all (or any) of ``filters``."""
        pass

    @abstractmethod
    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one record and return it as stored."""
        pass

    @abstractmethod
    def delete(self, table: str, filters: List[Filter], match_any: bool = False) -> int:
        """Delete matching rows and return how many were removed."""
        pass

    @abstractmethod
    def exec(self, statement: str) -> None:
        """Execute a raw structural statement (used only by the migrator)."""
        pass

    @abstractmethod
    def probe(self, table: str) -> str:
        """Run a minimal read against ``table`` and return the tenant id that answered."""
        pass

    def close(self):
        """Release transport resources."""
        pass
