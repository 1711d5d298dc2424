# filepath: tenantsync/src/database/reconciler.py

"""End-to-end reconciliation: verify → introspect → diff → plan → execute."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tenantsync.src.adapters.base import DataStore
from tenantsync.src.cancellation import CancellationToken
from tenantsync.src.database.introspector import TableShape, introspect
from tenantsync.src.database.migrator import (
    ExecutionReport, MigrationStep, RunLog, execute, generate_migration_script, plan
)
from tenantsync.src.database.schema_checker import SchemaDiff, diff
from tenantsync.src.database.type_mapping import TypeMap
from tenantsync.src.exceptions import ConfigurationError, ConnectivityError, SchemaConflictError
from tenantsync.src.tenancy.resolver import BindingStatus, TenantBinding, verify_binding

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    reference: BindingStatus
    target: BindingStatus
    dry_run: bool = True
    reference_shapes: Dict[str, TableShape] = field(default_factory=dict)
    target_shapes: Dict[str, TableShape] = field(default_factory=dict)
    diffs: List[SchemaDiff] = field(default_factory=list)
    steps: List[MigrationStep] = field(default_factory=list)
    execution: Optional[ExecutionReport] = None
    failed: List[Dict[str, str]] = field(default_factory=list)
    skipped: List[Dict[str, str]] = field(default_factory=list)
    script: str = ''

    @property
    def aborted(self) -> bool:
        """The run stopped at binding verification."""
        return (not self.reference.connected or not self.target.connected
                or self.reference.mismatched or self.target.mismatched)

    @property
    def success(self) -> bool:
        if self.aborted or self.failed:
            return False
        return self.execution is None or self.execution.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reference': self.reference.to_dict(),
            'target': self.target.to_dict(),
            'dry_run': self.dry_run,
            'missing': {d.table_name: [c.name for c in d.missing_columns] for d in self.diffs},
            'steps': [s.to_dict() for s in self.steps],
            'execution': self.execution.to_dict() if self.execution else None,
            'failed': list(self.failed),
            'skipped': list(self.skipped),
        }


def reconcile(reference_binding: TenantBinding, reference_store: DataStore,
              target_binding: TenantBinding, target_store: DataStore,
              tables: List[str],
              type_map: Optional[TypeMap] = None,
              renames: Optional[Dict[str, Dict[str, str]]] = None,
              probe_records: Optional[Dict[str, Dict[str, Any]]] = None,
              probe_table: str = 'patients',
              dry_run: bool = True,
              allow_probe: bool = False,
              cancel_token: Optional[CancellationToken] = None,
              run_log: Optional[RunLog] = None) -> ReconcileReport:
    """Bring the target tenant's tables up to the reference's column set.

    Only the target is ever probed or altered. Each table is isolated: a table
    that cannot be introspected is recorded and the rest continue.

    Raises:
        ConfigurationError: reference and target resolve to the same tenant
    """
    if reference_binding.tenant_id == target_binding.tenant_id:
        raise ConfigurationError(
            f"Reference and target are both bound to tenant {target_binding.tenant_id}"
        )

    type_map = type_map or TypeMap()
    renames = renames or {}
    probe_records = probe_records or {}

    report = ReconcileReport(
        reference=verify_binding(reference_binding, reference_store, probe_table),
        target=verify_binding(target_binding, target_store, probe_table),
        dry_run=dry_run,
    )
    if report.aborted:
        logger.error("Binding verification failed, nothing was introspected")
        return report

    for table in tables:
        if cancel_token is not None and cancel_token.cancelled:
            report.skipped.append({'table': table, 'reason': 'cancelled'})
            continue
        try:
            reference_shape = introspect(reference_store, table, type_map, allow_probe=False)
            if not reference_shape.columns:
                report.skipped.append({'table': table, 'reason': 'reference table is empty'})
                continue
            target_shape = introspect(
                target_store, table, type_map,
                probe_record=probe_records.get(table),
                hint=reference_shape,
                allow_probe=allow_probe,
            )
        except (ConnectivityError, SchemaConflictError) as e:
            report.failed.append({'table': table, 'stage': 'introspect', 'error': str(e)})
            logger.error(f"Introspection of {table} failed: {e}")
            continue

        report.reference_shapes[table] = reference_shape
        report.target_shapes[table] = target_shape

        if target_shape.probe_error:
            report.failed.append({'table': table, 'stage': 'probe', 'error': target_shape.probe_error})
        if not target_shape.columns:
            report.skipped.append({'table': table, 'reason': 'target table shape unknown (empty)'})
            continue

        table_diff = diff(reference_shape, target_shape, renames.get(table))
        report.diffs.append(table_diff)
        if table_diff.missing_columns:
            logger.info(f"{table}: missing {[c.name for c in table_diff.missing_columns]}")

    report.steps = plan(report.diffs)
    report.script = generate_migration_script(report.diffs, target_binding.tenant_id)

    if not dry_run and report.steps:
        report.execution = execute(target_store, report.steps, cancel_token=cancel_token, run_log=run_log)

    return report
