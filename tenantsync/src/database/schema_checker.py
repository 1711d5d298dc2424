# filepath: tenantsync/src/database/schema_checker.py

"""Schema comparison between a reference tenant and a target tenant."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from tenantsync.src.database.introspector import ColumnShape, TableShape


@dataclass
class SchemaDiff:
    """Additive gap between a reference table and a target table.

    Only ``missing_columns`` drives migrations. ``type_mismatches`` and
    ``renamed`` are informational.
    """
    table_name: str
    missing_columns: List[ColumnShape] = field(default_factory=list)
    type_mismatches: List[Tuple[str, str, str]] = field(default_factory=list)
    renamed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.missing_columns


def diff(reference: TableShape, target: TableShape,
         renames: Optional[Dict[str, str]] = None) -> SchemaDiff:
    """Columns the target lacks relative to the reference, in reference order.

    Args:
        reference: Shape of the tenant treated as correct
        target: Shape of the tenant to bring up to parity
        renames: {old_name: new_name}; a target column under ``old_name``
            satisfies ``new_name`` in the reference

    Returns:
        SchemaDiff for the reference table. Columns only present in the
        target are never reported.
    """
    renames = renames or {}
    target_names = {}
    renamed = []
    for column in target.columns:
        canonical = renames.get(column.name, column.name)
        if canonical != column.name:
            renamed.append((column.name, canonical))
        target_names.setdefault(canonical, column)

    missing = []
    mismatches = []
    for column in reference.columns:
        counterpart = target_names.get(column.name)
        if counterpart is None:
            missing.append(ColumnShape(column.name, column.inferred_type, column.nullable))
        elif counterpart.inferred_type != column.inferred_type:
            mismatches.append((column.name, column.inferred_type, counterpart.inferred_type))

    # Only report renames that actually matched a reference column
    reference_names = set(reference.column_names)
    renamed = [(old, new) for old, new in renamed if new in reference_names]

    return SchemaDiff(
        table_name=reference.table_name,
        missing_columns=missing,
        type_mismatches=mismatches,
        renamed=renamed,
    )


def diff_all(reference_shapes: Dict[str, TableShape], target_shapes: Dict[str, TableShape],
             renames: Optional[Dict[str, Dict[str, str]]] = None) -> List[SchemaDiff]:
    """Diff every table present on both sides, in reference table order.

    Args:
        reference_shapes: {table_name: TableShape}
        target_shapes: {table_name: TableShape}
        renames: {table_name: {old_name: new_name}}
    """
    renames = renames or {}
    diffs = []
    for table_name, reference in reference_shapes.items():
        target = target_shapes.get(table_name)
        if target is None:
            continue
        diffs.append(diff(reference, target, renames.get(table_name)))
    return diffs
