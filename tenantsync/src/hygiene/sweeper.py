# filepath: tenantsync/src/hygiene/sweeper.py

"""Data hygiene sweeper: predicate-based, dependency-ordered cleanup.

Rows are always enumerated and reported before anything is deleted, and the
delete pass removes exactly the previewed keys. Referencing (child) tables are
processed before the tables they reference.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from tenantsync.src.adapters.base import DataStore, Filter
from tenantsync.src.cancellation import CancellationToken
from tenantsync.src.exceptions import ConnectivityError, DataIntegrityWarning, SchemaConflictError
from tenantsync.src.hygiene.integrity import IntegrityRule, apply_rules

logger = logging.getLogger(__name__)

# Keeps IN-lists short enough for a REST query string
KEY_BATCH_SIZE = 100


@dataclass(frozen=True)
class SweepTarget:
    """A table in the sweep. Higher rank = deleted earlier (leaf tables)."""
    table_name: str
    dependency_rank: int
    parent_table: Optional[str] = None
    reference_column: Optional[str] = None
    key_column: str = 'id'

    @property
    def is_root(self) -> bool:
        return self.parent_table is None


@dataclass
class SweepPredicate:
    """Case-insensitive substring match of any needle in any naming field."""
    needles: List[str]
    fields: List[str]

    def __post_init__(self):
        self.needles = [n.strip() for n in self.needles if n and n.strip()]
        if not self.needles:
            raise ValueError("Sweep predicate needs at least one non-blank needle")
        if not self.fields:
            raise ValueError("Sweep predicate needs at least one naming field")

    def matches(self, row: Dict[str, Any]) -> bool:
        for name in self.fields:
            value = row.get(name)
            if value is None:
                continue
            text = str(value).lower()
            if any(needle.lower() in text for needle in self.needles):
                return True
        return False

    def to_filters(self) -> List[Filter]:
        return [Filter(name, 'ilike', needle) for name in self.fields for needle in self.needles]


@dataclass
class MatchedRow:
    table: str
    key: Any
    identifying: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {'table': self.table, 'key': self.key, **self.identifying}


@dataclass
class SweepReport:
    dry_run: bool
    matched: Dict[str, List[MatchedRow]] = field(default_factory=dict)
    deleted: Dict[str, int] = field(default_factory=dict)
    failed: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[DataIntegrityWarning] = field(default_factory=list)
    cancelled: bool = False

    @property
    def matched_count(self) -> int:
        return sum(len(rows) for rows in self.matched.values())

    @property
    def deleted_count(self) -> int:
        return sum(self.deleted.values())

    @property
    def success(self) -> bool:
        return not self.failed

    def matched_keys(self, table: str) -> List[Any]:
        return [row.key for row in self.matched.get(table, []) if row.key is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dry_run': self.dry_run,
            'matched': {t: [r.to_dict() for r in rows] for t, rows in self.matched.items()},
            'deleted': dict(self.deleted),
            'failed': list(self.failed),
            'warnings': [w.to_dict() for w in self.warnings],
            'cancelled': self.cancelled,
        }


def normalize_targets(table_order: Sequence[Union[SweepTarget, str, Dict[str, Any]]]) -> List[SweepTarget]:
    """Coerce the caller's order into SweepTargets, sorted for deletion.

    Plain table names get a rank from their position (first = leaf). Dicts use
    the sync.yaml keys ``table``, ``rank``, ``parent``, ``reference_column``,
    ``key_column``. The sort is stable, so equal ranks keep caller order.
    """
    targets = []
    total = len(table_order)
    for index, item in enumerate(table_order):
        if isinstance(item, SweepTarget):
            targets.append(item)
        elif isinstance(item, str):
            targets.append(SweepTarget(item, total - index))
        else:
            targets.append(SweepTarget(
                table_name=item['table'],
                dependency_rank=int(item.get('rank', total - index)),
                parent_table=item.get('parent'),
                reference_column=item.get('reference_column'),
                key_column=item.get('key_column', 'id'),
            ))

    ranks = {t.table_name: t.dependency_rank for t in targets}
    for target in targets:
        if target.parent_table is None:
            continue
        if not target.reference_column:
            raise ValueError(f"{target.table_name}: a parent table needs a reference_column")
        # A child must be enumerated after, and deleted before, its parent
        if target.parent_table not in ranks:
            raise ValueError(f"{target.table_name}: parent table {target.parent_table} is not a sweep target")
        if target.dependency_rank <= ranks[target.parent_table]:
            raise ValueError(
                f"{target.table_name}: rank {target.dependency_rank} must be higher than "
                f"parent {target.parent_table} rank {ranks[target.parent_table]}"
            )
    return sorted(targets, key=lambda t: t.dependency_rank, reverse=True)


def _batches(keys: List[Any], size: int = KEY_BATCH_SIZE):
    for start in range(0, len(keys), size):
        yield keys[start:start + size]


def _identify(target: SweepTarget, row: Dict[str, Any], identifying_fields: List[str]) -> MatchedRow:
    identifying = {name: row.get(name) for name in identifying_fields if name in row}
    if target.reference_column:
        identifying[target.reference_column] = row.get(target.reference_column)
    return MatchedRow(table=target.table_name, key=row.get(target.key_column), identifying=identifying)


def preview(store: DataStore, predicate: SweepPredicate, targets: List[SweepTarget],
            identifying_fields: Optional[List[str]] = None,
            integrity_rules: Optional[Dict[str, List[IntegrityRule]]] = None,
            dry_run: bool = True) -> SweepReport:
    """Enumerate every row the sweep would remove. Read-only.

    Parents are enumerated before children so that dependent tables can be
    matched by ``reference_column IN <parent keys>``.
    """
    identifying_fields = identifying_fields or []
    integrity_rules = integrity_rules or {}
    report = SweepReport(dry_run=dry_run)

    for target in sorted(targets, key=lambda t: t.dependency_rank):
        table = target.table_name
        try:
            if target.is_root:
                rows = store.select(table, predicate.to_filters(), match_any=True)
                rows = [row for row in rows if predicate.matches(row)]
            else:
                parent_keys = report.matched_keys(target.parent_table)
                rows = []
                for batch in _batches(parent_keys):
                    rows.extend(store.select(table, [Filter(target.reference_column, 'in', batch)]))
        except (ConnectivityError, SchemaConflictError) as e:
            report.failed.append({'table': table, 'stage': 'preview', 'error': str(e)})
            logger.error(f"Could not enumerate {table}: {e}")
            continue

        matched = [_identify(target, row, identifying_fields) for row in rows]
        report.matched[table] = matched
        logger.info(f"{table}: {len(matched)} matching row(s)")

        for row in matched:
            if row.key is None:
                report.warnings.append(DataIntegrityWarning(
                    table, None, f"matched row has no {target.key_column}; it will not be deleted"))

        if table in integrity_rules:
            report.warnings.extend(apply_rules(table, rows, integrity_rules[table], target.key_column))

    return report


def _blocked_parents(targets: List[SweepTarget], failed_tables: Set[str]) -> Set[str]:
    return {t.parent_table for t in targets if t.table_name in failed_tables and t.parent_table}


def sweep(store: DataStore, predicate: SweepPredicate,
          table_order: Sequence[Union[SweepTarget, str, Dict[str, Any]]],
          dry_run: bool = True,
          identifying_fields: Optional[List[str]] = None,
          integrity_rules: Optional[Dict[str, List[IntegrityRule]]] = None,
          cancel_token: Optional[CancellationToken] = None) -> SweepReport:
    """Preview, then (unless ``dry_run``) delete the previewed rows child-first.

    A table's failure is recorded and the sweep continues. A parent whose child
    table failed is left alone so that its children are never orphaned.
    """
    targets = normalize_targets(table_order)
    report = preview(store, predicate, targets, identifying_fields, integrity_rules, dry_run=dry_run)

    logger.info(f"Sweep preview: {report.matched_count} row(s) across {len(report.matched)} table(s)")
    if dry_run:
        return report

    failed_tables = {f['table'] for f in report.failed}

    for target in targets:
        table = target.table_name
        if cancel_token is not None and cancel_token.cancelled:
            report.cancelled = True
            logger.warning(f"Sweep cancelled before {table}")
            break
        if table in failed_tables:
            continue
        if table in _blocked_parents(targets, failed_tables):
            report.failed.append({'table': table, 'stage': 'delete',
                                  'error': 'skipped: a dependent table could not be swept'})
            failed_tables.add(table)
            logger.warning(f"Skipping {table}: a dependent table failed")
            continue

        keys = report.matched_keys(table)
        deleted = 0
        try:
            for batch in _batches(keys):
                deleted += store.delete(table, [Filter(target.key_column, 'in', batch)])
        except (ConnectivityError, SchemaConflictError) as e:
            report.failed.append({'table': table, 'stage': 'delete', 'error': str(e)})
            failed_tables.add(table)
            logger.error(f"Deleting from {table} failed after {deleted} row(s): {e}")
        report.deleted[table] = deleted
        logger.info(f"{table}: deleted {deleted} row(s)")

    return report
