# filepath: tenantsync/src/reports.py

"""Operator-facing tables and exports for reconciliation and sweep reports."""

import logging
from pathlib import Path
from typing import Dict, List

import pandas as pd

from tenantsync.src.database.introspector import TableShape
from tenantsync.src.database.migrator import ExecutionReport, MigrationStep
from tenantsync.src.database.type_mapping import sql_type
from tenantsync.src.hygiene.sweeper import SweepReport

logger = logging.getLogger(__name__)

SHAPE_COLUMNS = ['table_name', 'position', 'column_name', 'inferred_type', 'sql_type', 'nullable', 'source']


def shapes_to_frame(shapes: Dict[str, TableShape]) -> pd.DataFrame:
    """One row per observed column."""
    records = []
    for table_name, shape in shapes.items():
        for position, column in enumerate(shape.columns):
            records.append({
                'table_name': table_name,
                'position': position,
                'column_name': column.name,
                'inferred_type': column.inferred_type,
                'sql_type': sql_type(column.inferred_type),
                'nullable': column.nullable,
                'source': shape.source,
            })
    return pd.DataFrame.from_records(records, columns=SHAPE_COLUMNS)


def steps_to_frame(steps: List[MigrationStep]) -> pd.DataFrame:
    columns = ['table_name', 'column_name', 'statement', 'applied_at', 'error']
    return pd.DataFrame.from_records([s.to_dict() for s in steps], columns=columns)


def execution_report_to_frame(report: ExecutionReport) -> pd.DataFrame:
    """Failures only; an empty frame means success."""
    records = [{
        'table_name': f['step'].table_name,
        'column_name': f['step'].column_name,
        'statement': f['step'].statement,
        'error': f['error'],
    } for f in report.failed]
    return pd.DataFrame.from_records(records, columns=['table_name', 'column_name', 'statement', 'error'])


def matched_rows_to_frame(report: SweepReport) -> pd.DataFrame:
    """Preview rows of a sweep, children first as they will be deleted."""
    records = [row.to_dict() for rows in report.matched.values() for row in rows]
    frame = pd.DataFrame.from_records(records)
    if frame.empty:
        return pd.DataFrame(columns=['table', 'key'])
    return frame


def sweep_summary_frame(report: SweepReport) -> pd.DataFrame:
    tables = list(report.matched.keys())
    for failure in report.failed:
        if failure['table'] not in tables:
            tables.append(failure['table'])
    errors = {f['table']: f['error'] for f in report.failed}
    return pd.DataFrame({
        'table': tables,
        'matched': [len(report.matched.get(t, [])) for t in tables],
        'deleted': [report.deleted.get(t, 0) for t in tables],
        'error': [errors.get(t, '') for t in tables],
    })


def export_shapes(shapes: Dict[str, TableShape], path: Path) -> Path:
    """Write a schema snapshot as CSV or JSON, chosen by file suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = shapes_to_frame(shapes)

    if path.suffix.lower() == '.json':
        frame.to_json(path, orient='records', indent=2)
    else:
        frame.to_csv(path, index=False)

    logger.info(f"Exported {len(frame)} column(s) from {len(shapes)} table(s) to {path}")
    return path
