# filepath: tenantsync/src/database/type_mapping.py

"""Heuristic column-type inference from sampled values.

An inferred type is a hint, not ground truth: it comes from a single observed
value plus the column name. Configuration overrides are consulted first.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

TEXT = 'text'
UUID = 'uuid'
TIMESTAMP = 'timestamp'
NUMERIC = 'numeric'
INTEGER = 'integer'
BOOLEAN = 'boolean'
ARRAY_OF_TEXT = 'array-of-text'

COLUMN_TYPES = (TEXT, UUID, TIMESTAMP, NUMERIC, INTEGER, BOOLEAN, ARRAY_OF_TEXT)

SQL_TYPES = {
    TEXT: 'TEXT',
    UUID: 'UUID',
    TIMESTAMP: 'TIMESTAMPTZ',
    NUMERIC: 'NUMERIC',
    INTEGER: 'INTEGER',
    BOOLEAN: 'BOOLEAN',
    ARRAY_OF_TEXT: 'TEXT[]',
}

UUID_VALUE = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)
ISO_DATE_VALUE = re.compile(r'^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2})?.*)?$')

# Name heuristics, first match wins
DEFAULT_NAME_PATTERNS: List[Tuple[str, str]] = [
    (r'date', TIMESTAMP),
    (r'(_at|_time|_on)$', TIMESTAMP),
    (r'(amount|fee|rate|balance|total|price|cost)', NUMERIC),
    (r'^age$|count|quantity', INTEGER),
]


def sql_type(inferred_type: str) -> str:
    """Postgres column type for an inferred type."""
    return SQL_TYPES.get(inferred_type, 'TEXT')


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _is_whole_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, str):
        return value.strip().lstrip('-').isdigit()
    return False


class TypeMap:
    """Ordered name-pattern table plus value rules.

    Args:
        overrides: {regex: type} from configuration, checked before anything else
        name_patterns: replaces the default name heuristics when given
    """

    def __init__(self, overrides: Optional[Dict[str, str]] = None,
                 name_patterns: Optional[List[Tuple[str, str]]] = None):
        self.overrides = []
        for pattern, column_type in (overrides or {}).items():
            if column_type not in COLUMN_TYPES:
                raise ValueError(f"Unknown column type {column_type!r} for pattern {pattern!r}")
            self.overrides.append((re.compile(pattern, re.IGNORECASE), column_type))
        self.name_patterns = [
            (re.compile(pattern, re.IGNORECASE), column_type)
            for pattern, column_type in (name_patterns or DEFAULT_NAME_PATTERNS)
        ]

    def _by_name(self, name: str) -> Optional[str]:
        for pattern, column_type in self.name_patterns:
            if pattern.search(name):
                return column_type
        return None

    def infer(self, name: str, value: Any) -> str:
        for pattern, column_type in self.overrides:
            if pattern.search(name):
                return column_type

        if isinstance(value, bool):
            return BOOLEAN
        if isinstance(value, (list, tuple)):
            return ARRAY_OF_TEXT
        if isinstance(value, str) and UUID_VALUE.match(value):
            return UUID

        by_name = self._by_name(name)
        if value is None:
            return by_name or TEXT

        # Name hint only counts when the value agrees with it
        if by_name == TIMESTAMP and isinstance(value, str) and ISO_DATE_VALUE.match(value):
            return TIMESTAMP
        if by_name == NUMERIC and _is_number(value):
            return NUMERIC
        if by_name == INTEGER and _is_whole_number(value):
            return INTEGER

        if isinstance(value, int):
            return INTEGER
        if isinstance(value, float):
            return NUMERIC
        # dicts and everything else land in TEXT
        return TEXT
