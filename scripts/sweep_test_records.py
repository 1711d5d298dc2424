# filepath: scripts/sweep_test_records.py
"""Remove test/garbage patients and everything that references them.

Always prints the matched rows first. Dry run unless --apply is given.

Usage:
    python3 scripts/sweep_test_records.py
    python3 scripts/sweep_test_records.py --needle testst --needle testing --apply
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
from tenantsync.src.exceptions import ConfigurationError
from tenantsync.src.hygiene import SweepPredicate, bed_occupancy_rule, normalize_targets, sweep
from tenantsync.src.reports import matched_rows_to_frame, sweep_summary_frame
from tenantsync.src.sync_settings import load_sync_settings
from tenantsync.src.tenancy import resolve_binding, verify_binding, describe_tenant


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description='Test record sweeper')
    parser.add_argument('--needle', action='append',
                        help='Case-insensitive substring to match (repeatable; default from sync.yaml)')
    parser.add_argument('--field', action='append',
                        help='Naming field to search (repeatable; default from sync.yaml)')
    parser.add_argument('--apply', action='store_true',
                        help='Actually delete the matched rows (default is dry run)')
    args = parser.parse_args()

    setup_logging(AppConfig.LOG_DIR, log_prefix='sweep', log_level=AppConfig.LOG_LEVEL,
                  enable_console=False)

    try:
        settings = load_sync_settings(AppConfig.SYNC_CONFIG_FILE)
        binding = resolve_binding(AppConfig.as_mapping())
        predicate = SweepPredicate(args.needle or settings.sweep.needles,
                                   args.field or settings.sweep.fields)
        targets = normalize_targets(settings.sweep.targets)
        store = open_store(binding)
    except (ConfigurationError, ValueError) as e:
        print(f"❌ Configuration error: {e}")
        return 3

    print(f"🔍 Finding test records in {describe_tenant(binding.tenant_id, settings.tenants)}...")
    print(f"   needles={predicate.needles} fields={predicate.fields}")

    cancel_token = CancellationToken()
    cancel_token.install_signal_handler()
    integrity_rules = {'beds': [bed_occupancy_rule]} if settings.check_bed_occupancy else {}

    try:
        status = verify_binding(binding, store, AppConfig.PROBE_TABLE)
        if not status.connected or status.mismatched:
            print(f"❌ Binding check failed: connected={status.connected} "
                  f"observed={status.observed_tenant_id} error={status.error}")
            return 1

        report = sweep(
            store, predicate, targets,
            dry_run=not args.apply,
            identifying_fields=settings.sweep.identifying_fields,
            integrity_rules=integrity_rules,
            cancel_token=cancel_token,
        )
    finally:
        store.close()

    if report.matched_count == 0 and report.success:
        print("✅ No test records found. Database is clean!")
        return 0

    print(f"\n📋 Found {report.matched_count} row(s) to remove:")
    print(matched_rows_to_frame(report).to_string(index=False))

    for warning in report.warnings:
        print(f"⚠️  {warning}")

    print("\n📊 Summary:")
    print(sweep_summary_frame(report).to_string(index=False))

    if report.dry_run:
        print("\n🔍 Dry run completed - nothing deleted. Use --apply to delete.")
    else:
        print(f"\n🗑️  Deleted {report.deleted_count} row(s)")
        if report.cancelled:
            print("⏹️  Sweep was cancelled before finishing")
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
