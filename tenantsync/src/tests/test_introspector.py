# filepath: tenantsync/src/tests/test_introspector.py

"""Unit tests for shape discovery by sampling and probe insert."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import sqlite3
import tempfile

import pytest
from unittest.mock import Mock

from tenantsync.src.adapters.base import DataStore, Filter
from tenantsync.src.adapters.sqlite_store import SQLiteStore
from tenantsync.src.database.introspector import (
    ColumnShape, TableShape, build_probe_record, introspect, probe_insert, PROBE_MARKER_PREFIX
)
from tenantsync.src.database.type_mapping import TypeMap, TIMESTAMP, INTEGER, TEXT
from tenantsync.src.exceptions import ConnectivityError, SchemaConflictError


@pytest.fixture
def empty_patients_db():
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name
    conn = sqlite3.connect(db_path)
    conn.execute("""
        CREATE TABLE patients (
            id INTEGER PRIMARY KEY,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            age INTEGER,
            created_at TIMESTAMP
        )
    """)
    conn.commit()
    conn.close()
    store = SQLiteStore(db_path)
    yield store
    store.close()
    os.unlink(db_path)


class TestSampling:

    def test_sample_row_never_mutates(self):
        store = Mock(spec=DataStore)
        store.select.return_value = [{'id': 7, 'first_name': 'Asha', 'age': 41}]

        shape = introspect(store, 'patients')

        assert shape.source == 'sample'
        assert shape.column_names == ['id', 'first_name', 'age']
        assert shape.get('age').inferred_type == INTEGER
        store.select.assert_called_once_with('patients', limit=1)
        store.insert.assert_not_called()
        store.delete.assert_not_called()
        store.exec.assert_not_called()

    def test_empty_without_probe(self):
        store = Mock(spec=DataStore)
        store.select.return_value = []

        shape = introspect(store, 'beds', allow_probe=False)

        assert shape.source == 'empty'
        assert shape.columns == []
        store.insert.assert_not_called()

    def test_read_failure_propagates(self):
        store = Mock(spec=DataStore)
        store.select.side_effect = SchemaConflictError('relation "beds" does not exist')
        with pytest.raises(SchemaConflictError):
            introspect(store, 'beds')


class TestProbe:

    def test_probe_with_hint_leaves_no_residue(self, empty_patients_db):
        hint = TableShape('patients', [
            ColumnShape('id', INTEGER),
            ColumnShape('first_name', TEXT),
            ColumnShape('last_name', TEXT),
            ColumnShape('age', INTEGER),
            ColumnShape('created_at', TIMESTAMP),
        ])

        shape = introspect(empty_patients_db, 'patients', hint=hint)

        assert shape.source == 'probe'
        assert shape.probe_error is None
        assert shape.column_names == ['id', 'first_name', 'last_name', 'age', 'created_at']
        assert shape.get('created_at').inferred_type == TIMESTAMP
        assert empty_patients_db.select('patients') == []

    def test_configured_probe_record(self, empty_patients_db):
        record = {'first_name': '{marker}', 'last_name': '{marker}', 'age': 1}
        shape = probe_insert(empty_patients_db, 'patients', TypeMap(), probe_record=record)
        assert shape.source == 'probe'
        assert empty_patients_db.select('patients') == []

    def test_rejected_insert_is_reported_not_raised(self, empty_patients_db):
        shape = introspect(empty_patients_db, 'patients')

        assert shape.source == 'empty'
        assert shape.columns == []
        assert shape.probe_error.startswith('insert:')
        assert 'NOT NULL' in shape.probe_error
        assert empty_patients_db.select('patients') == []

    def test_cleanup_failure_is_reported(self):
        store = Mock(spec=DataStore)
        store.select.return_value = []
        store.insert.return_value = {'id': 99, 'first_name': 'x'}
        store.delete.side_effect = ConnectivityError('connection reset')

        shape = introspect(store, 'patients')

        assert shape.source == 'probe'
        assert 'delete: connection reset' in shape.probe_error
        store.delete.assert_called_once_with('patients', [Filter('id', 'eq', 99)])

    def test_cleanup_attempted_after_failed_insert(self):
        store = Mock(spec=DataStore)
        store.insert.side_effect = ConnectivityError('timeout')
        store.delete.return_value = 0

        shape = probe_insert(store, 'patients', TypeMap(), probe_record={'first_name': '{marker}'})

        assert 'insert: timeout' in shape.probe_error
        store.delete.assert_called_once()
        filters = store.delete.call_args[0][1]
        assert filters[0].column == 'first_name'
        assert filters[0].value.startswith(PROBE_MARKER_PREFIX)


class DuplicatingStore(SQLiteStore):
    """Writes every insert twice, as a re-sent request would."""

    def insert(self, table, record):
        super().insert(table, record)
        return super().insert(table, record)


class TestDuplicateInsertCleanup:

    def test_marker_preferred_over_id(self):
        store = Mock(spec=DataStore)
        store.insert.return_value = {'id': 7, 'first_name': 'x'}
        store.delete.return_value = 2

        probe_insert(store, 'patients', TypeMap(), probe_record={'first_name': '{marker}'})

        filters = store.delete.call_args[0][1]
        assert [f.column for f in filters] == ['first_name']
        assert filters[0].value.startswith(PROBE_MARKER_PREFIX)

    def test_all_copies_removed(self, empty_patients_db):
        store = DuplicatingStore(empty_patients_db.db_path)
        record = {'first_name': '{marker}', 'last_name': '{marker}'}

        shape = probe_insert(store, 'patients', TypeMap(), probe_record=record)

        assert shape.source == 'probe'
        assert shape.probe_error is None
        assert store.select('patients') == []
        store.close()


def test_build_probe_record_uses_required_looking_columns():
    hint = TableShape('patients', [
        ColumnShape('first_name', TEXT),
        ColumnShape('notes', TEXT),
        ColumnShape('hospital_id', 'uuid'),
    ])
    record = build_probe_record(hint, '__probe_x__')
    assert set(record) == {'first_name', 'hospital_id'}
    assert record['first_name'] == '__probe_x__'
    assert build_probe_record(None, 'm') == {}
