# filepath: scripts/verify_binding.py
"""Show which tenant database this deployment is actually bound to.

Exit codes:
  0 = connected to the configured tenant
  1 = could not connect
  2 = connected, but to a different tenant than configured
  3 = configuration error
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
from tenantsync.src.exceptions import ConfigurationError
from tenantsync.src.sync_settings import load_sync_settings
from tenantsync.src.tenancy import resolve_binding, verify_binding, describe_tenant


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description='Tenant binding check')
    parser.add_argument('--reference', action='store_true',
                        help='Check the REFERENCE_SUPABASE_* binding instead of the target')
    parser.add_argument('--probe-table', default=AppConfig.PROBE_TABLE,
                        help='Known table used for the probe query')
    args = parser.parse_args()

    setup_logging(AppConfig.LOG_DIR, log_prefix='verify_binding', log_level=AppConfig.LOG_LEVEL,
                  enable_console=False)

    print("🔍 RUNTIME DATABASE CHECK")
    print("=" * 50)

    try:
        settings = load_sync_settings(AppConfig.SYNC_CONFIG_FILE)
        binding = resolve_binding(AppConfig.as_mapping(), prefix='REFERENCE_' if args.reference else '')
        store = open_store(binding)
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        return 3

    try:
        status = verify_binding(binding, store, args.probe_table)
    finally:
        store.close()

    print(f"Endpoint:   {binding.endpoint_url}")
    print(f"Configured: {describe_tenant(status.configured_tenant_id, settings.tenants)}")
    print(f"Observed:   {describe_tenant(status.observed_tenant_id, settings.tenants)}")

    if not status.connected:
        print(f"Status:     ❌ Failed ({status.error})")
        return 1
    if status.mismatched:
        print("Status:     ⚠️  MISCONFIGURED - connected to a different tenant than configured")
        return 2
    print("Status:     ✅ Connected")
    return 0


if __name__ == "__main__":
    sys.exit(main())
