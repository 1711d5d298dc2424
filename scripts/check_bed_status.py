# filepath: scripts/check_bed_status.py
"""Report beds whose status disagrees with their patient data. Read-only."""

import sys
import os
import argparse
from collections import Counter

# Add project root to path
project_root = os.path.join(os.path.dirname(__file__), '..')
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from tenantsync.config import AppConfig
from tenantsync.src.adapters.logging import setup_logging
from tenantsync.src.adapters.store_factory import open_store
from tenantsync.src.exceptions import ConfigurationError, ConnectivityError, SchemaConflictError
from tenantsync.src.hygiene.integrity import bed_occupancy_rule, scan_integrity
from tenantsync.src.tenancy import resolve_binding


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description='Bed status consistency check')
    parser.add_argument('--table', default='beds', help='Bed table name')
    args = parser.parse_args()

    setup_logging(AppConfig.LOG_DIR, log_prefix='bed_status', log_level=AppConfig.LOG_LEVEL,
                  enable_console=False)

    try:
        store = open_store(resolve_binding(AppConfig.as_mapping()))
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        return 3

    print("🔍 Checking all beds status in database...\n")
    try:
        rows, warnings = scan_integrity(store, args.table, [bed_occupancy_rule])
    except (ConnectivityError, SchemaConflictError) as e:
        print(f"❌ Error fetching beds: {e}")
        return 1
    finally:
        store.close()

    print(f"📊 Total beds: {len(rows)}\n")
    print("Status distribution:")
    for status, count in sorted(Counter(str(r.get('status')) for r in rows).items()):
        print(f"  {status}: {count}")

    if not warnings:
        print("\n✅ All bed statuses are consistent")
        return 0

    print(f"\n⚠️  {len(warnings)} inconsistent bed(s):")
    for warning in warnings:
        print(f"  {warning}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
