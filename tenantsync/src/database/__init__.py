from .introspector import ColumnShape, TableShape, introspect, probe_insert
from .schema_checker import SchemaDiff, diff, diff_all
from .migrator import MigrationStep, ExecutionReport, RunLog, plan, execute, generate_migration_script
from .type_mapping import TypeMap, sql_type

__all__ = [
    'ColumnShape',
    'TableShape',
    'introspect',
    'probe_insert',
    'SchemaDiff',
    'diff',
    'diff_all',
    'MigrationStep',
    'ExecutionReport',
    'RunLog',
    'plan',
    'execute',
    'generate_migration_script',
    'TypeMap',
    'sql_type',
]
