# filepath: tenantsync/src/tests/test_sweeper.py

"""Unit tests for the dependency-ordered hygiene sweeper."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import sqlite3
import tempfile

import pytest
from unittest.mock import Mock

from tenantsync.src.adapters.sqlite_store import SQLiteStore
from tenantsync.src.cancellation import CancellationToken
from tenantsync.src.exceptions import ConnectivityError
from tenantsync.src.hygiene import (
    SweepPredicate, SweepTarget, bed_occupancy_rule, normalize_targets, sweep
)


class RecordingStore(SQLiteStore):
    """SQLiteStore that remembers the order of deletes and can fail chosen tables."""

    def __init__(self, db_path, failing_tables=()):
        super().__init__(db_path)
        self.delete_order = []
        self.failing_tables = set(failing_tables)

    def delete(self, table, filters, match_any=False):
        if table in self.failing_tables:
            raise ConnectivityError(f"{table}: connection reset")
        self.delete_order.append(table)
        return super().delete(table, filters, match_any)


def build_hospital_db():
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE patients (id INTEGER PRIMARY KEY, first_name TEXT, last_name TEXT);
        CREATE TABLE admissions (id INTEGER PRIMARY KEY, patient_id INTEGER);
        CREATE TABLE transactions (id INTEGER PRIMARY KEY, admission_id INTEGER, amount REAL);
        CREATE TABLE appointments (id INTEGER PRIMARY KEY, patient_id INTEGER);

        INSERT INTO patients VALUES (1, 'Test', 'User');
        INSERT INTO patients VALUES (2, 'Real', 'User');
        INSERT INTO patients VALUES (3, 'Divyansh', 'Testing');
        INSERT INTO admissions VALUES (10, 1);
        INSERT INTO admissions VALUES (11, 2);
        INSERT INTO admissions VALUES (12, 3);
        INSERT INTO transactions VALUES (100, 10, 500.0);
        INSERT INTO transactions VALUES (101, 11, 250.0);
        INSERT INTO transactions VALUES (102, 12, 75.0);
        INSERT INTO appointments VALUES (200, 1);
        INSERT INTO appointments VALUES (201, 2);
    """)
    conn.commit()
    conn.close()
    return db_path


CHAIN = [
    SweepTarget('patients', 1),
    SweepTarget('transactions', 3, parent_table='admissions', reference_column='admission_id'),
    SweepTarget('appointments', 2, parent_table='patients', reference_column='patient_id'),
    SweepTarget('admissions', 2, parent_table='patients', reference_column='patient_id'),
]


@pytest.fixture
def hospital_db():
    db_path = build_hospital_db()
    yield db_path
    os.unlink(db_path)


def count(store, table):
    return len(store.select(table))


class TestDryRun:

    def test_scenario_single_match_no_delete(self, hospital_db):
        sqlite_store = SQLiteStore(hospital_db)
        store = Mock(wraps=sqlite_store)
        predicate = SweepPredicate(needles=['test'], fields=['first_name'])

        report = sweep(store, predicate, ['patients'], dry_run=True)

        assert report.dry_run is True
        assert report.matched_count == 1
        store.delete.assert_not_called()
        assert count(sqlite_store, 'patients') == 3
        sqlite_store.close()

    def test_real_user_not_matched(self, hospital_db):
        store = SQLiteStore(hospital_db)
        predicate = SweepPredicate(needles=['test'], fields=['first_name'])
        report = sweep(store, predicate, ['patients'])
        names = [row.identifying.get('first_name') for row in report.matched['patients']]
        assert 'Real' not in names
        store.close()

    def test_dry_run_and_real_run_match_the_same_rows(self, hospital_db):
        store = SQLiteStore(hospital_db)
        predicate = SweepPredicate(needles=['test'], fields=['first_name', 'last_name'])

        preview = sweep(store, predicate, CHAIN, dry_run=True,
                        identifying_fields=['first_name', 'last_name'])
        assert count(store, 'patients') == 3

        real = sweep(store, predicate, CHAIN, dry_run=False,
                     identifying_fields=['first_name', 'last_name'])

        for table in ('patients', 'admissions', 'transactions', 'appointments'):
            assert preview.matched_keys(table) == real.matched_keys(table)
        assert real.deleted == {
            'transactions': 2, 'appointments': 1, 'admissions': 2, 'patients': 2,
        }
        assert [r['id'] for r in store.select('patients')] == [2]
        assert [r['id'] for r in store.select('admissions')] == [11]
        assert [r['id'] for r in store.select('transactions')] == [101]
        assert [r['id'] for r in store.select('appointments')] == [201]
        store.close()


class TestOrdering:

    def test_children_deleted_before_parents(self, hospital_db):
        store = RecordingStore(hospital_db)
        predicate = SweepPredicate(needles=['test'], fields=['first_name'])

        report = sweep(store, predicate, CHAIN, dry_run=False)

        assert report.success
        order = store.delete_order
        assert order.index('transactions') < order.index('admissions') < order.index('patients')
        assert order.index('appointments') < order.index('patients')
        store.close()

    def test_delete_order_independent_of_input_order(self, hospital_db):
        store = RecordingStore(hospital_db)
        predicate = SweepPredicate(needles=['test'], fields=['first_name'])

        sweep(store, predicate, list(reversed(CHAIN)), dry_run=False)

        assert store.delete_order == ['transactions', 'admissions', 'appointments', 'patients']
        store.close()


class TestFailureIsolation:

    def test_failed_child_blocks_its_parents_only(self, hospital_db):
        store = RecordingStore(hospital_db, failing_tables={'transactions'})
        predicate = SweepPredicate(needles=['test'], fields=['first_name'])

        report = sweep(store, predicate, CHAIN, dry_run=False)

        assert not report.success
        failed = {f['table']: f for f in report.failed}
        assert 'connection reset' in failed['transactions']['error']
        assert failed['admissions']['error'].startswith('skipped')
        assert failed['patients']['error'].startswith('skipped')
        # sibling of the failed branch is still swept
        assert report.deleted['appointments'] == 1
        assert store.delete_order == ['appointments']
        assert count(store, 'patients') == 3
        assert count(store, 'admissions') == 3
        store.close()

    def test_missing_table_fails_preview_only_for_that_table(self, hospital_db):
        store = SQLiteStore(hospital_db)
        predicate = SweepPredicate(needles=['test'], fields=['first_name'])
        targets = [
            SweepTarget('patients', 1),
            SweepTarget('bed_history', 2, parent_table='patients', reference_column='patient_id'),
        ]

        report = sweep(store, predicate, targets, dry_run=True)

        assert report.failed[0]['table'] == 'bed_history'
        assert report.failed[0]['stage'] == 'preview'
        assert len(report.matched['patients']) == 1
        store.close()

    def test_cancellation_stops_before_next_table(self, hospital_db):
        token = CancellationToken()
        token.cancel()
        store = RecordingStore(hospital_db)
        predicate = SweepPredicate(needles=['test'], fields=['first_name'])

        report = sweep(store, predicate, CHAIN, dry_run=False, cancel_token=token)

        assert report.cancelled is True
        assert store.delete_order == []
        store.close()


def test_integrity_warnings_are_reported(hospital_db):
    conn = sqlite3.connect(hospital_db)
    conn.executescript("""
        CREATE TABLE beds (id INTEGER PRIMARY KEY, status TEXT, patient_id INTEGER);
        INSERT INTO beds VALUES (1, 'occupied', 1);
        INSERT INTO beds VALUES (2, 'vacant', 1);
    """)
    conn.commit()
    conn.close()
    store = SQLiteStore(hospital_db)
    targets = [
        SweepTarget('patients', 1),
        SweepTarget('beds', 2, parent_table='patients', reference_column='patient_id'),
    ]
    report = sweep(store, SweepPredicate(['test'], ['first_name']), targets,
                   integrity_rules={'beds': [bed_occupancy_rule]})

    assert [w.row_id for w in report.warnings] == [2]
    store.close()


class TestNormalizeTargets:

    def test_plain_names_rank_by_position(self):
        targets = normalize_targets(['transactions', 'admissions', 'patients'])
        assert [t.table_name for t in targets] == ['transactions', 'admissions', 'patients']
        assert targets[0].dependency_rank > targets[-1].dependency_rank

    def test_dicts_from_settings(self):
        targets = normalize_targets([
            {'table': 'patients', 'rank': 1},
            {'table': 'appointments', 'rank': 2, 'parent': 'patients', 'reference_column': 'patient_id'},
        ])
        assert [t.table_name for t in targets] == ['appointments', 'patients']
        assert targets[0].parent_table == 'patients'
        assert targets[1].is_root

    def test_parent_needs_reference_column(self):
        with pytest.raises(ValueError):
            normalize_targets([{'table': 'admissions', 'parent': 'patients'}])

    def test_parent_must_be_a_target(self):
        with pytest.raises(ValueError, match='not a sweep target'):
            normalize_targets([
                {'table': 'admissions', 'rank': 2, 'parent': 'patients', 'reference_column': 'patient_id'},
            ])

    @pytest.mark.parametrize("child_rank", [1, 0])
    def test_child_rank_must_exceed_parent(self, child_rank):
        with pytest.raises(ValueError, match='must be higher'):
            normalize_targets([
                {'table': 'admissions', 'rank': child_rank, 'parent': 'patients',
                 'reference_column': 'patient_id'},
                {'table': 'patients', 'rank': 1},
            ])

    def test_bad_order_rejected_before_any_delete(self, hospital_db):
        store = Mock(wraps=SQLiteStore(hospital_db))
        targets = [
            {'table': 'admissions', 'rank': 1, 'parent': 'patients', 'reference_column': 'patient_id'},
            {'table': 'patients', 'rank': 1},
        ]

        with pytest.raises(ValueError):
            sweep(store, SweepPredicate(['test'], ['first_name']), targets, dry_run=False)

        store.delete.assert_not_called()
        assert count(store, 'admissions') == 3


class TestPredicate:

    def test_case_insensitive_any_field(self):
        predicate = SweepPredicate(needles=['TEST'], fields=['first_name', 'last_name'])
        assert predicate.matches({'first_name': 'Real', 'last_name': 'Testst'})
        assert not predicate.matches({'first_name': 'Real', 'last_name': None})

    @pytest.mark.parametrize("needles,fields", [
        ([], ['first_name']),
        (['', '  '], ['first_name']),
        (['test'], []),
    ])
    def test_invalid(self, needles, fields):
        with pytest.raises(ValueError):
            SweepPredicate(needles=needles, fields=fields)
