# filepath: tenantsync/src/hygiene/integrity.py

"""Referential sanity checks. Findings are reported, never corrected."""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from tenantsync.src.adapters.base import DataStore
from tenantsync.src.exceptions import DataIntegrityWarning

logger = logging.getLogger(__name__)

# A rule returns a message when the row looks inconsistent, else None
IntegrityRule = Callable[[Dict[str, Any]], Optional[str]]

OCCUPIED_STATUSES = {'occupied'}
VACANT_STATUSES = {'vacant', 'available'}
PATIENT_FIELDS = ('patient_id', 'ipd_number', 'admission_date')


def bed_occupancy_rule(row: Dict[str, Any]) -> Optional[str]:
    """Bed status must agree with whether a patient is attached."""
    status = str(row.get('status') or '').lower()
    has_patient = bool(row.get('patient_id'))

    if status in OCCUPIED_STATUSES and not has_patient:
        return f"status is {row.get('status')} but no patient is attached"
    if status in VACANT_STATUSES and any(row.get(f) for f in PATIENT_FIELDS):
        carried = ', '.join(f for f in PATIENT_FIELDS if row.get(f))
        return f"status is {row.get('status')} but row still carries {carried}"
    if has_patient and status not in OCCUPIED_STATUSES:
        return f"has patient {row.get('patient_id')} but status is {row.get('status')}"
    return None


def apply_rules(table: str, rows: List[Dict[str, Any]], rules: List[IntegrityRule],
                key_column: str = 'id') -> List[DataIntegrityWarning]:
    warnings = []
    for row in rows:
        for rule in rules:
            message = rule(row)
            if message:
                warning = DataIntegrityWarning(table, row.get(key_column), message)
                logger.warning(str(warning))
                warnings.append(warning)
    return warnings


def scan_integrity(store: DataStore, table: str, rules: List[IntegrityRule],
                   key_column: str = 'id') -> Tuple[List[Dict[str, Any]], List[DataIntegrityWarning]]:
    """Read every row of ``table`` and apply the rules.

    Returns the rows read alongside the warnings, so callers can report on
    the same snapshot the rules saw.

    Raises:
        ConnectivityError / SchemaConflictError from the store read
    """
    rows = store.select(table)
    logger.info(f"Scanning {len(rows)} row(s) of {table} with {len(rules)} rule(s)")
    return rows, apply_rules(table, rows, rules, key_column)
