# filepath: tenantsync/src/tests/test_integrity.py

"""Unit tests for bed occupancy integrity checks."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import importlib.util

import pytest
from unittest.mock import Mock, patch

from tenantsync.src.adapters.base import DataStore
from tenantsync.src.exceptions import DataIntegrityWarning
from tenantsync.src.hygiene.integrity import apply_rules, bed_occupancy_rule, scan_integrity


@pytest.mark.parametrize("row,flagged", [
    ({'status': 'occupied', 'patient_id': 'p1'}, False),
    ({'status': 'vacant', 'patient_id': None}, False),
    ({'status': 'Available'}, False),
    ({'status': 'occupied', 'patient_id': None}, True),
    ({'status': 'vacant', 'patient_id': None, 'ipd_number': 'IPD-12'}, True),
    ({'status': 'available', 'admission_date': '2025-01-02'}, True),
    ({'status': 'maintenance', 'patient_id': 'p2'}, True),
])
def test_bed_occupancy_rule(row, flagged):
    assert (bed_occupancy_rule(row) is not None) == flagged


def test_message_names_leftover_fields():
    message = bed_occupancy_rule({'status': 'vacant', 'patient_id': 'p1', 'ipd_number': 'IPD-1'})
    assert 'patient_id' in message
    assert 'ipd_number' in message


def test_apply_rules_builds_warnings():
    rows = [
        {'bed_id': 1, 'status': 'occupied', 'patient_id': None},
        {'bed_id': 2, 'status': 'occupied', 'patient_id': 'p9'},
    ]
    warnings = apply_rules('beds', rows, [bed_occupancy_rule], key_column='bed_id')

    assert len(warnings) == 1
    assert isinstance(warnings[0], DataIntegrityWarning)
    assert warnings[0].to_dict()['row_id'] == 1
    assert 'beds[1]' in str(warnings[0])


def test_scan_reads_whole_table_without_writing():
    store = Mock(spec=DataStore)
    store.select.return_value = [{'id': 3, 'status': 'vacant', 'patient_id': 'p4'}]

    rows, warnings = scan_integrity(store, 'beds', [bed_occupancy_rule])

    assert rows == store.select.return_value
    assert [w.row_id for w in warnings] == [3]
    store.select.assert_called_once_with('beds')
    store.delete.assert_not_called()
    store.insert.assert_not_called()


def load_check_bed_status():
    path = os.path.join(os.path.dirname(__file__), '..', '..', '..', 'scripts', 'check_bed_status.py')
    spec = importlib.util.spec_from_file_location('check_bed_status', path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_bed_status_script_reads_table_once(capsys):
    script = load_check_bed_status()
    store = Mock(spec=DataStore)
    store.select.return_value = [
        {'id': 1, 'status': 'occupied', 'patient_id': 'p1'},
        {'id': 2, 'status': 'occupied', 'patient_id': None},
    ]

    with patch.object(script, 'open_store', return_value=store), \
            patch.object(script, 'resolve_binding'), \
            patch.object(script, 'setup_logging'), \
            patch.object(sys, 'argv', ['check_bed_status.py', '--table', 'beds']):
        assert script.main() == 0

    out = capsys.readouterr().out
    assert 'Total beds: 2' in out
    assert 'occupied: 2' in out
    assert '1 inconsistent bed(s)' in out
    store.select.assert_called_once_with('beds')
    store.close.assert_called_once()
