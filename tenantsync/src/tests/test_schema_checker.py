# filepath: tenantsync/src/tests/test_schema_checker.py

"""Unit tests for the schema differ."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import itertools

import pytest

from tenantsync.src.database.introspector import ColumnShape, TableShape
from tenantsync.src.database.schema_checker import diff, diff_all


def shape(table, *columns):
    """columns: names, or (name, type) pairs; bare names are text."""
    built = []
    for column in columns:
        if isinstance(column, tuple):
            built.append(ColumnShape(*column))
        else:
            built.append(ColumnShape(column, 'text'))
    return TableShape(table, built)


class TestDiff:

    def test_scenario_name_age_fee(self):
        reference = shape('patients', 'name', ('age', 'integer'), ('fee', 'numeric'))
        target = shape('patients', 'name')

        result = diff(reference, target)

        assert result.table_name == 'patients'
        assert [c.name for c in result.missing_columns] == ['age', 'fee']
        assert [c.inferred_type for c in result.missing_columns] == ['integer', 'numeric']
        assert not result.is_empty

    def test_target_only_columns_never_reported(self):
        reference = shape('patients', 'name')
        target = shape('patients', 'name', 'legacy_code', 'old_flag')
        result = diff(reference, target)
        assert result.is_empty
        assert result.missing_columns == []

    def test_order_follows_reference(self):
        reference = shape('doctors', 'z_col', 'a_col', 'm_col', 'name')
        target = shape('doctors', 'name')
        assert [c.name for c in diff(reference, target).missing_columns] == ['z_col', 'a_col', 'm_col']

    def test_deterministic(self):
        reference = shape('beds', 'bed_number', 'status', 'patient_id', 'ipd_number')
        target = shape('beds', 'status')
        first = diff(reference, target)
        for _ in range(5):
            again = diff(reference, target)
            assert [(c.name, c.inferred_type) for c in again.missing_columns] == \
                [(c.name, c.inferred_type) for c in first.missing_columns]

    def test_empty_iff_superset(self):
        universe = ['name', 'age', 'fee', 'phone']
        for r in range(len(universe) + 1):
            for ref_cols in itertools.combinations(universe, r):
                for t in range(len(universe) + 1):
                    for target_cols in itertools.combinations(universe, t):
                        result = diff(shape('t', *ref_cols), shape('t', *target_cols))
                        assert result.is_empty == set(target_cols).issuperset(ref_cols)

    def test_type_mismatch_is_informational(self):
        reference = shape('patients', ('age', 'integer'), 'name')
        target = shape('patients', ('age', 'text'), 'name')
        result = diff(reference, target)
        assert result.is_empty
        assert result.type_mismatches == [('age', 'integer', 'text')]

    def test_rename_satisfies_new_name(self):
        reference = shape('patients', 'name', 'assigned_doctor')
        target = shape('patients', 'name', 'doctor_name')
        result = diff(reference, target, renames={'doctor_name': 'assigned_doctor'})
        assert result.is_empty
        assert result.renamed == [('doctor_name', 'assigned_doctor')]

    def test_rename_not_reported_when_unused(self):
        reference = shape('patients', 'name')
        target = shape('patients', 'name', 'doctor_name')
        result = diff(reference, target, renames={'doctor_name': 'assigned_doctor'})
        assert result.renamed == []

    def test_missing_columns_are_copies(self):
        reference = shape('patients', ('age', 'integer'))
        result = diff(reference, shape('patients'))
        result.missing_columns[0].inferred_type = 'text'
        assert reference.columns[0].inferred_type == 'integer'


class TestDiffAll:

    def test_tables_missing_on_target_are_skipped(self):
        references = {
            'patients': shape('patients', 'name', 'age'),
            'doctors': shape('doctors', 'name'),
        }
        targets = {'patients': shape('patients', 'name')}

        diffs = diff_all(references, targets)

        assert [d.table_name for d in diffs] == ['patients']
        assert [c.name for c in diffs[0].missing_columns] == ['age']

    def test_per_table_renames(self):
        references = {'patients': shape('patients', 'assigned_doctor')}
        targets = {'patients': shape('patients', 'doctor_name')}
        diffs = diff_all(references, targets, {'patients': {'doctor_name': 'assigned_doctor'}})
        assert diffs[0].is_empty
