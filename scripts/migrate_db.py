# filepath: scripts/migrate_db.py
"""Thin wrapper script for the tenant migration tool.

Adds the columns the target tenant is missing relative to the reference.
Dry run unless --apply is given.
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
from tenantsync.src.cancellation import CancellationToken
from tenantsync.src.database.migrator import RunLog
from tenantsync.src.database.reconciler import reconcile
from tenantsync.src.database.type_mapping import TypeMap
from tenantsync.src.exceptions import ConfigurationError
from tenantsync.src.reports import execution_report_to_frame, steps_to_frame
from tenantsync.src.sync_settings import load_sync_settings
from tenantsync.src.tenancy import resolve_binding, describe_tenant


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description='Tenant Database Migration Tool')
    parser.add_argument('--apply', action='store_true',
                        help='Actually apply migrations (default is dry run)')
    parser.add_argument('--probe-empty', action='store_true',
                        help='Use a throwaway insert to learn the shape of empty target tables')
    parser.add_argument('--tables', nargs='*', help='Tables to reconcile (default: sync.yaml tables)')
    args = parser.parse_args()

    setup_logging(AppConfig.LOG_DIR, log_prefix='migrate_db', log_level=AppConfig.LOG_LEVEL)

    print("🔄 Tenant Database Migration Tool")
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
    if not args.apply:
        print("🔍 DRY RUN MODE - No changes will be made to the target")

    cancel_token = CancellationToken()
    cancel_token.install_signal_handler()

    reference_store = open_store(reference_binding)
    target_store = open_store(target_binding)
    try:
        report = reconcile(
            reference_binding, reference_store, target_binding, target_store,
            tables=args.tables or settings.tables,
            type_map=type_map,
            renames=settings.renames,
            probe_records=settings.probe_records,
            probe_table=AppConfig.PROBE_TABLE,
            dry_run=not args.apply,
            allow_probe=args.probe_empty,
            cancel_token=cancel_token,
            run_log=RunLog(AppConfig.RUN_LOG_FILE),
        )
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        return 3
    finally:
        reference_store.close()
        target_store.close()

    if report.aborted:
        print("❌ Binding verification failed - run scripts/verify_binding.py for details")
        return 1

    for failure in report.failed:
        print(f"❌ {failure['table']} ({failure['stage']}): {failure['error']}")
    for skipped in report.skipped:
        print(f"⚪ {skipped['table']}: {skipped['reason']}")

    if not report.steps:
        print("✅ Schemas are already synchronized")
        return 0 if report.success else 1

    print(f"\n📋 {len(report.steps)} step(s):")
    print(steps_to_frame(report.steps).to_string(index=False))

    if report.execution is None:
        print("\n🔍 Dry run completed - no changes made")
        print("Use --apply to execute the migrations")
        return 0 if report.success else 1

    execution = report.execution
    print(f"\n✅ Applied: {execution.applied}")
    if execution.failed:
        print(f"❌ Failed: {len(execution.failed)}")
        print(execution_report_to_frame(execution).to_string(index=False))
    if execution.cancelled:
        print(f"⏹️  Cancelled: {execution.not_run} step(s) not run")
    print(f"📝 Run log: {AppConfig.RUN_LOG_FILE}")
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
