"""
Test Suite for the holdout split and fold assignment.
"""

import pytest
import numpy as np
import pandas as pd

from personality_health.folds import FoldAssignment, make_folds, split_holdout


class TestMakeFolds:
    """Tests for make_folds and the FoldAssignment partition."""

    @pytest.mark.parametrize("n_rows", [10, 37, 153, 1000])
    def test_partition_covers_every_row_once(self, n_rows):
        """Test each training row lands in exactly one fold."""
        folds = make_folds(n_rows, n_splits=10)

        test_indices = np.concatenate([test for _, test in folds.splits()])
        assert sorted(test_indices.tolist()) == list(range(n_rows))
        assert len(folds) == 10

    def test_folds_non_empty_and_balanced(self):
        """Test fold sizes differ by at most one."""
        folds = make_folds(153, n_splits=10)
        sizes = [len(folds.fold_members(k)) for k in range(10)]

        assert min(sizes) > 0
        assert max(sizes) - min(sizes) <= 1

    def test_train_and_test_disjoint(self):
        """Test no row is both trained on and held out within a split."""
        folds = make_folds(50, n_splits=10)

        for train_idx, test_idx in folds.splits():
            assert not set(train_idx) & set(test_idx)
            assert len(train_idx) + len(test_idx) == 50

    def test_reproducible(self):
        """Test the same seed gives the same assignment."""
        a = make_folds(80, random_state=7)
        b = make_folds(80, random_state=7)

        np.testing.assert_array_equal(a.fold_ids, b.fold_ids)

    def test_splits_are_stable_across_calls(self):
        """Test repeated iteration yields identical splits."""
        folds = make_folds(40)
        first = folds.as_list()
        second = folds.as_list()

        for (tr1, te1), (tr2, te2) in zip(first, second):
            np.testing.assert_array_equal(tr1, tr2)
            np.testing.assert_array_equal(te1, te2)

    def test_too_few_rows(self):
        """Test fewer rows than folds is rejected."""
        with pytest.raises(ValueError, match="Cannot build 10 folds"):
            make_folds(9, n_splits=10)

    def test_validate_detects_empty_fold(self):
        """Test a gap in fold ids is reported."""
        folds = FoldAssignment(np.array([0, 0, 2, 2]))

        with pytest.raises(ValueError, match="Empty folds"):
            folds.validate()


class TestSplitHoldout:
    """Tests for split_holdout."""

    def test_split_sizes(self):
        """Test holdout fraction and disjoint indices."""
        df = pd.DataFrame({'x': np.arange(100), 'y': np.arange(100)})
        train_df, holdout_df = split_holdout(df, holdout_fraction=0.2)

        assert len(train_df) == 80
        assert len(holdout_df) == 20
        assert not set(train_df.index) & set(holdout_df.index)

    def test_invalid_fraction(self):
        """Test fractions outside (0, 1) are rejected."""
        df = pd.DataFrame({'x': np.arange(10)})

        with pytest.raises(ValueError, match="holdout_fraction"):
            split_holdout(df, holdout_fraction=1.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
