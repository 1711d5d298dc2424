# filepath: tenantsync/config.py
"""Runtime parameters for tenant sync tooling."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file (project root)
PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


class AppConfig:
    """Application configuration class."""

    # Logging configuration - logs live next to the package, not inside it
    LOG_DIR = Path(os.getenv("TENANTSYNC_LOG_DIR", PROJECT_ROOT / "logs"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Target tenant (the deployment being checked / migrated / swept)
    SUPABASE_URL = os.getenv("SUPABASE_URL")
    SUPABASE_KEY = os.getenv("SUPABASE_KEY")

    # Reference tenant (the schema the target is brought up to parity with)
    REFERENCE_SUPABASE_URL = os.getenv("REFERENCE_SUPABASE_URL")
    REFERENCE_SUPABASE_KEY = os.getenv("REFERENCE_SUPABASE_KEY")

    # Transport
    REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "30"))  # seconds
    MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
    EXEC_RPC = os.getenv("EXEC_RPC", "exec_sql")

    # Known table used for the binding probe query
    PROBE_TABLE = os.getenv("PROBE_TABLE", "patients")

    # Table list, type overrides, renames, sweep targets
    SYNC_CONFIG_FILE = Path(os.getenv("SYNC_CONFIG_FILE", PROJECT_ROOT / "config" / "sync.yaml"))

    # Append-only audit log of migration step outcomes
    RUN_LOG_FILE = LOG_DIR / "migration_runs.jsonl"

    @classmethod
    def as_mapping(cls) -> dict:
        """Binding-relevant values as a plain mapping for resolve_binding."""
        return {
            'SUPABASE_URL': cls.SUPABASE_URL,
            'SUPABASE_KEY': cls.SUPABASE_KEY,
            'REFERENCE_SUPABASE_URL': cls.REFERENCE_SUPABASE_URL,
            'REFERENCE_SUPABASE_KEY': cls.REFERENCE_SUPABASE_KEY,
        }
