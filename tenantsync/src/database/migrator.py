# filepath: tenantsync/src/database/migrator.py

"""Migration planner and executor for additive schema changes."""

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from tenantsync.src.adapters.base import DataStore
from tenantsync.src.cancellation import CancellationToken
from tenantsync.src.database.schema_checker import SchemaDiff
from tenantsync.src.database.type_mapping import sql_type
from tenantsync.src.exceptions import ConnectivityError, SchemaConflictError

logger = logging.getLogger(__name__)

SIMPLE_IDENTIFIER = re.compile(r'^[a-z_][a-z0-9_]*$')


def quote_identifier(name: str) -> str:
    """Bare identifier when Postgres would read it unchanged, double-quoted otherwise."""
    if SIMPLE_IDENTIFIER.match(name):
        return name
    return '"' + name.replace('"', '""') + '"'


@dataclass
class MigrationStep:
    """One re-runnable structural statement."""
    statement: str
    table_name: str
    column_name: str
    idempotent: bool = True
    applied_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def description(self) -> str:
        return f"Add column {self.column_name} to {self.table_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'statement': self.statement,
            'table_name': self.table_name,
            'column_name': self.column_name,
            'idempotent': self.idempotent,
            'applied_at': self.applied_at,
            'error': self.error,
        }


@dataclass
class ExecutionReport:
    applied: int = 0
    failed: List[Dict[str, Any]] = field(default_factory=list)
    cancelled: bool = False
    not_run: int = 0

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'applied': self.applied,
            'failed': [{'step': f['step'].to_dict(), 'error': f['error']} for f in self.failed],
            'cancelled': self.cancelled,
            'not_run': self.not_run,
        }


class RunLog:
    """Append-only JSONL audit trail of step outcomes."""

    def __init__(self, path: Path, run_id: Optional[str] = None):
        self.path = Path(path)
        self.run_id = run_id or uuid.uuid4().hex[:12]

    def record(self, step: MigrationStep, tenant_id: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        entry = {
            'run_id': self.run_id,
            'tenant_id': tenant_id,
            'logged_at': datetime.now(timezone.utc).isoformat(),
            **step.to_dict(),
        }
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(entry) + "\n")

    def read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, encoding='utf-8') as f:
            return [json.loads(line) for line in f if line.strip()]


def plan(diffs: List[SchemaDiff]) -> List[MigrationStep]:
    """One guarded ``ADD COLUMN IF NOT EXISTS`` per missing column.

    Added columns are always nullable so they can land on populated tables.
    """
    steps = []
    for schema_diff in diffs:
        table = quote_identifier(schema_diff.table_name)
        for column in schema_diff.missing_columns:
            statement = (
                f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS "
                f"{quote_identifier(column.name)} {sql_type(column.inferred_type)};"
            )
            steps.append(MigrationStep(
                statement=statement,
                table_name=schema_diff.table_name,
                column_name=column.name,
            ))
    return steps


def execute(store: DataStore, steps: List[MigrationStep],
            cancel_token: Optional[CancellationToken] = None,
            run_log: Optional[RunLog] = None) -> ExecutionReport:
    """Apply steps one at a time, isolating each step's failure.

    Steps are independent (one column add never depends on another), so a
    rejected statement is recorded and the run moves on.
    """
    report = ExecutionReport()

    for i, step in enumerate(steps, 1):
        if cancel_token is not None and cancel_token.cancelled:
            report.cancelled = True
            report.not_run = len(steps) - i + 1
            logger.warning(f"Cancelled before step {i}/{len(steps)}; {report.not_run} step(s) not run")
            break

        logger.info(f"[{i}/{len(steps)}] {step.statement}")
        try:
            store.exec(step.statement)
            step.applied_at = datetime.now(timezone.utc).isoformat()
            step.error = None
            report.applied += 1
        except (SchemaConflictError, ConnectivityError) as e:
            step.error = str(e)
            report.failed.append({'step': step, 'error': str(e)})
            logger.error(f"Step failed ({step.description}): {e}")

        if run_log is not None:
            run_log.record(step, store.tenant_id)

    logger.info(f"Migration finished: {report.applied} applied, {len(report.failed)} failed")
    return report


def generate_migration_script(diffs: List[SchemaDiff], tenant_label: str = '') -> str:
    """Reviewable SQL script for a dry run.

    Args:
        diffs: Output of diff / diff_all
        tenant_label: Target shown in the header

    Returns:
        Complete SQL script text
    """
    steps = plan(diffs)
    informational = [d for d in diffs if d.type_mismatches or d.renamed]
    if not steps and not informational:
        return "-- No schema changes needed. Target is at parity with reference."

    script_lines = [
        "-- =======================================================",
        f"-- Tenant schema reconciliation{' for ' + tenant_label if tenant_label else ''}",
        f"-- Generated {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "-- Every statement is safe to re-run.",
        "-- =======================================================",
        "",
    ]

    for schema_diff in diffs:
        table_steps = [s for s in steps if s.table_name == schema_diff.table_name]
        if not table_steps and not schema_diff.type_mismatches and not schema_diff.renamed:
            continue
        script_lines.append(f"-- Table: {schema_diff.table_name}")
        script_lines.extend(step.statement for step in table_steps)
        for old_name, new_name in schema_diff.renamed:
            script_lines.append(f"-- Column '{old_name}' treated as '{new_name}' (rename table)")
        for column_name, ref_type, target_type in schema_diff.type_mismatches:
            script_lines.append(
                f"-- Column '{column_name}' type differs: reference {ref_type}, target {target_type} (not changed)"
            )
        script_lines.append("")

    script_lines.extend([
        f"-- Total statements: {len(steps)}",
        "-- End of migration script",
    ])
    return "\n".join(script_lines)
