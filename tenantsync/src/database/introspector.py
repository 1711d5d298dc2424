# filepath: tenantsync/src/database/introspector.py

"""Derive a table's observed shape from sample data.

No privileged metadata access is assumed: the shape comes from one sampled
row, or from a throwaway probe insert when the table is empty.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tenantsync.src.adapters.base import DataStore, Filter
from tenantsync.src.exceptions import ConnectivityError, SchemaConflictError
from tenantsync.src.database.type_mapping import (
    TypeMap, UUID, TIMESTAMP, NUMERIC, INTEGER, BOOLEAN, ARRAY_OF_TEXT
)

logger = logging.getLogger(__name__)

SOURCE_SAMPLE = 'sample'
SOURCE_PROBE = 'probe'
SOURCE_EMPTY = 'empty'

# Columns that tend to be NOT NULL in the hospital schemas
REQUIRED_LOOKING = re.compile(r'^(name|first_name|last_name|title|hospital_id|patient_id|gender|phone)$')

PROBE_MARKER_PREFIX = '__probe_'


@dataclass
class ColumnShape:
    name: str
    inferred_type: str
    nullable: bool = True


@dataclass
class TableShape:
    """Observed structure of one table. Derived, never authoritative."""
    table_name: str
    columns: List[ColumnShape] = field(default_factory=list)
    source: str = SOURCE_SAMPLE
    probe_error: Optional[str] = None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get(self, name: str) -> Optional[ColumnShape]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


def shape_from_row(table_name: str, row: Dict[str, Any], type_map: TypeMap,
                   source: str = SOURCE_SAMPLE) -> TableShape:
    """Build a TableShape from one row, keeping the row's column order."""
    columns = [ColumnShape(name, type_map.infer(name, value)) for name, value in row.items()]
    return TableShape(table_name=table_name, columns=columns, source=source)


def _placeholder(column: ColumnShape, marker: str) -> Any:
    if column.inferred_type == UUID:
        return str(uuid.uuid4())
    if column.inferred_type == TIMESTAMP:
        return '1970-01-01T00:00:00Z'
    if column.inferred_type in (NUMERIC, INTEGER):
        return 0
    if column.inferred_type == BOOLEAN:
        return False
    if column.inferred_type == ARRAY_OF_TEXT:
        return []
    return marker


def build_probe_record(hint: Optional[TableShape], marker: str) -> Dict[str, Any]:
    """Minimal record from the required-looking columns of a hint shape."""
    if hint is None:
        return {}
    return {
        column.name: _placeholder(column, marker)
        for column in hint.columns
        if REQUIRED_LOOKING.match(column.name)
    }


def _cleanup_filters(record: Dict[str, Any], inserted: Dict[str, Any], marker: str) -> List[Filter]:
    # The marker also matches duplicate rows left by a re-sent insert
    marked = [Filter(name, 'eq', value) for name, value in record.items() if value == marker]
    if marked:
        return marked
    if inserted.get('id') is not None:
        return [Filter('id', 'eq', inserted['id'])]
    return [Filter(name, 'eq', value) for name, value in record.items()
            if isinstance(value, (str, int, float, bool))]


def probe_insert(store: DataStore, table_name: str, type_map: TypeMap,
                 probe_record: Optional[Dict[str, Any]] = None,
                 hint: Optional[TableShape] = None) -> TableShape:
    """Discover an empty table's shape with a throwaway insert.

    The cleanup delete is attempted even when the insert raised, since the
    row may have been written before the failure. Insert and delete errors are
    recorded on the returned shape, never raised.
    """
    marker = f"{PROBE_MARKER_PREFIX}{uuid.uuid4().hex[:12]}__"
    if probe_record is not None:
        record = {k: (marker if v == '{marker}' else v) for k, v in probe_record.items()}
    else:
        record = build_probe_record(hint, marker)

    shape = TableShape(table_name=table_name, source=SOURCE_EMPTY)
    errors = []
    inserted: Dict[str, Any] = {}

    try:
        inserted = store.insert(table_name, record)
        if inserted:
            shape = shape_from_row(table_name, inserted, type_map, source=SOURCE_PROBE)
        logger.info(f"Probe insert into {table_name} returned {len(inserted)} columns")
    except (ConnectivityError, SchemaConflictError) as e:
        errors.append(f"insert: {e}")
        logger.warning(f"Probe insert into {table_name} failed: {e}")

    filters = _cleanup_filters(record, inserted, marker)
    if filters:
        try:
            removed = store.delete(table_name, filters)
            logger.info(f"Probe cleanup removed {removed} row(s) from {table_name}")
        except (ConnectivityError, SchemaConflictError) as e:
            errors.append(f"delete: {e}")
            logger.error(f"Probe cleanup on {table_name} failed, residue possible: {e}")
    elif inserted or not errors:
        errors.append("delete: no identifying fields to clean up probe row")

    if errors:
        shape.probe_error = "; ".join(errors)
    return shape


def introspect(store: DataStore, table_name: str, type_map: Optional[TypeMap] = None,
               probe_record: Optional[Dict[str, Any]] = None,
               hint: Optional[TableShape] = None,
               allow_probe: bool = True) -> TableShape:
    """Observed shape of ``table_name``.

    Reads one sample row; never mutates data when that row exists. Falls back to
    ``probe_insert`` for empty tables when ``allow_probe`` is set.

    Raises:
        ConnectivityError: the sample read failed in transport
        SchemaConflictError: the relation does not exist or was rejected
    """
    type_map = type_map or TypeMap()
    rows = store.select(table_name, limit=1)
    if rows:
        shape = shape_from_row(table_name, rows[0], type_map)
        logger.debug(f"{table_name}: {len(shape.columns)} columns from sample row")
        return shape

    if not allow_probe:
        logger.info(f"{table_name} is empty and probing is disabled")
        return TableShape(table_name=table_name, source=SOURCE_EMPTY)

    logger.info(f"{table_name} is empty, falling back to probe insert")
    return probe_insert(store, table_name, type_map, probe_record=probe_record, hint=hint)
