# filepath: tenantsync/src/sync_settings.py

"""Sync configuration file (tables, type overrides, renames, sweep targets)."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from tenantsync.src.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TABLES = ['patients', 'patient_transactions', 'patient_admissions', 'appointments',
                  'doctors', 'departments', 'beds']

# Children first: transactions/admissions/appointments reference patients.id
DEFAULT_SWEEP_TARGETS = [
    {'table': 'patient_transactions', 'rank': 2, 'parent': 'patients', 'reference_column': 'patient_id'},
    {'table': 'patient_admissions', 'rank': 2, 'parent': 'patients', 'reference_column': 'patient_id'},
    {'table': 'appointments', 'rank': 2, 'parent': 'patients', 'reference_column': 'patient_id'},
    {'table': 'patients', 'rank': 1},
]


@dataclass
class SweepSettings:
    needles: List[str] = field(default_factory=lambda: ['test'])
    fields: List[str] = field(default_factory=lambda: ['first_name', 'last_name'])
    targets: List[Dict[str, Any]] = field(default_factory=lambda: [dict(t) for t in DEFAULT_SWEEP_TARGETS])
    identifying_fields: List[str] = field(default_factory=lambda: ['patient_id', 'first_name', 'last_name'])


@dataclass
class SyncSettings:
    tables: List[str] = field(default_factory=lambda: list(DEFAULT_TABLES))
    type_overrides: Dict[str, str] = field(default_factory=dict)
    renames: Dict[str, Dict[str, str]] = field(default_factory=dict)
    probe_records: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    tenants: Dict[str, str] = field(default_factory=dict)
    sweep: SweepSettings = field(default_factory=SweepSettings)
    check_bed_occupancy: bool = True


def _expect(value, kind, name):
    if value is not None and not isinstance(value, kind):
        raise ConfigurationError(f"'{name}' must be a {kind.__name__}, got {type(value).__name__}")
    return value


def load_sync_settings(path: Optional[Path]) -> SyncSettings:
    """Load sync.yaml; a missing file means defaults.

    Raises:
        ConfigurationError: unreadable YAML or wrongly typed sections
    """
    if path is None or not Path(path).exists():
        logger.info(f"No sync config at {path}, using defaults")
        return SyncSettings()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    _expect(raw, dict, 'root')
    settings = SyncSettings()

    if raw.get('tables') is not None:
        settings.tables = [str(t) for t in _expect(raw['tables'], list, 'tables')]
    settings.type_overrides = dict(_expect(raw.get('type_overrides'), dict, 'type_overrides') or {})
    settings.renames = {
        table: dict(mapping or {})
        for table, mapping in (_expect(raw.get('renames'), dict, 'renames') or {}).items()
    }
    settings.probe_records = dict(_expect(raw.get('probe_records'), dict, 'probe_records') or {})
    settings.tenants = {str(k): str(v) for k, v in (_expect(raw.get('tenants'), dict, 'tenants') or {}).items()}

    sweep = _expect(raw.get('sweep'), dict, 'sweep') or {}
    if sweep.get('needles') is not None:
        settings.sweep.needles = [str(n) for n in _expect(sweep['needles'], list, 'sweep.needles')]
    if sweep.get('fields') is not None:
        settings.sweep.fields = [str(n) for n in _expect(sweep['fields'], list, 'sweep.fields')]
    if sweep.get('targets') is not None:
        settings.sweep.targets = list(_expect(sweep['targets'], list, 'sweep.targets'))
    if sweep.get('identifying_fields') is not None:
        settings.sweep.identifying_fields = list(_expect(sweep['identifying_fields'], list,
                                                         'sweep.identifying_fields'))

    integrity = _expect(raw.get('integrity'), dict, 'integrity') or {}
    settings.check_bed_occupancy = bool(integrity.get('bed_occupancy', True))

    logger.info(f"Loaded sync config from {path}: {len(settings.tables)} tables")
    return settings
