# filepath: scripts/export_schema.py
"""Export a tenant's observed table shapes to CSV or JSON. Read-only."""

import sys
import os
import argparse
from datetime import datetime

# Add project root to path
project_root = os.path.join(os.path.dirname(__file__), '..')
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from tenantsync.config import AppConfig
from tenantsync.src.adapters.logging import setup_logging
from tenantsync.src.adapters.store_factory import open_store
from tenantsync.src.database.introspector import introspect
from tenantsync.src.database.type_mapping import TypeMap
from tenantsync.src.exceptions import ConfigurationError, ConnectivityError, SchemaConflictError
from tenantsync.src.reports import export_shapes
from tenantsync.src.sync_settings import load_sync_settings
from tenantsync.src.tenancy import resolve_binding


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description='Tenant schema export')
    parser.add_argument('--reference', action='store_true', help='Export the reference tenant')
    parser.add_argument('--output', help='Output file (.csv or .json)')
    args = parser.parse_args()

    setup_logging(AppConfig.LOG_DIR, log_prefix='export_schema', log_level=AppConfig.LOG_LEVEL,
                  enable_console=False)

    try:
        settings = load_sync_settings(AppConfig.SYNC_CONFIG_FILE)
        binding = resolve_binding(AppConfig.as_mapping(), prefix='REFERENCE_' if args.reference else '')
        type_map = TypeMap(settings.type_overrides)
        store = open_store(binding)
    except (ConfigurationError, ValueError) as e:
        print(f"❌ Configuration error: {e}")
        return 3

    output = args.output or os.path.join(
        project_root, 'exports',
        f"{binding.tenant_id}_schema_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    )

    shapes = {}
    try:
        for table in settings.tables:
            try:
                shape = introspect(store, table, type_map, allow_probe=False)
            except (ConnectivityError, SchemaConflictError) as e:
                print(f"❌ {table}: {e}")
                continue
            if not shape.columns:
                print(f"⚪ {table}: empty, skipped")
                continue
            shapes[table] = shape
            print(f"📋 {table}: {len(shape.columns)} columns")
    finally:
        store.close()

    path = export_shapes(shapes, output)
    print(f"\n💾 Schema exported to: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
