# filepath: scripts/check_schema.py
"""Thin wrapper script for the tenant schema comparison tool.

Compares the reference tenant's tables with the target tenant's and writes a
reviewable migration script. Never alters either database.
"""

import sys
import os
import argparse

# Add project root to path
project_root = os.path.join(os.path.dirname(__file__), '..')
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from tenantsync.config import AppConfig
from tenantsync.src.adapters.logging import setup_logging
from tenantsync.src.adapters.store_factory import open_store
from tenantsync.src.database.reconciler import reconcile
from tenantsync.src.database.type_mapping import TypeMap
from tenantsync.src.exceptions import ConfigurationError
from tenantsync.src.sync_settings import load_sync_settings
from tenantsync.src.tenancy import resolve_binding, describe_tenant


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description='Tenant schema comparison tool')
    parser.add_argument('--tables', nargs='*', help='Tables to compare (default: sync.yaml tables)')
    parser.add_argument('--output', default=os.path.join(project_root, 'scripts', 'migration.sql'),
                        help='Where to save the generated migration script')
    args = parser.parse_args()

    setup_logging(AppConfig.LOG_DIR, log_prefix='check_schema', log_level=AppConfig.LOG_LEVEL,
                  enable_console=False)

    print("🔍 Tenant Schema Comparison Tool")
    print("=" * 50)

    try:
        settings = load_sync_settings(AppConfig.SYNC_CONFIG_FILE)
        reference_binding = resolve_binding(AppConfig.as_mapping(), prefix='REFERENCE_')
        target_binding = resolve_binding(AppConfig.as_mapping())
        type_map = TypeMap(settings.type_overrides)
    except (ConfigurationError, ValueError) as e:
        print(f"❌ Configuration error: {e}")
        return 3

    print(f"📖 Reference: {describe_tenant(reference_binding.tenant_id, settings.tenants)}")
    print(f"🎯 Target:    {describe_tenant(target_binding.tenant_id, settings.tenants)}")

    reference_store = open_store(reference_binding)
    target_store = open_store(target_binding)
    try:
        report = reconcile(
            reference_binding, reference_store, target_binding, target_store,
            tables=args.tables or settings.tables,
            type_map=type_map,
            renames=settings.renames,
            probe_table=AppConfig.PROBE_TABLE,
            dry_run=True,
        )
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        return 3
    finally:
        reference_store.close()
        target_store.close()

    if report.aborted:
        for side, status in (('Reference', report.reference), ('Target', report.target)):
            if not status.connected:
                print(f"❌ {side} not reachable: {status.error}")
            elif status.mismatched:
                print(f"⚠️  {side} answered from {status.observed_tenant_id}, "
                      f"configured {status.configured_tenant_id}")
        return 1

    for failure in report.failed:
        print(f"❌ {failure['table']} ({failure['stage']}): {failure['error']}")
    for skipped in report.skipped:
        print(f"⚪ {skipped['table']}: {skipped['reason']}")

    if not report.steps:
        print("✅ Schemas are synchronized!")
        return 0 if report.success else 1

    print(f"🔧 Found {len(report.steps)} missing column(s)")
    print("\n📝 Migration Script:")
    print("=" * 50)
    print(report.script)

    with open(args.output, 'w', encoding='utf-8') as f:
        f.write(report.script)

    print(f"\n💾 Migration script saved to: {args.output}")
    print("\n⚠️  IMPORTANT: Review the migration script, then run scripts/migrate_db.py --apply")
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
