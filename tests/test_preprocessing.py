"""
Test Suite for Preprocessing Module
=====================================

Tests for sentinel recoding, the row filter, trait scoring and imputation.
"""

import pytest
import numpy as np
import pandas as pd

from personality_health.preprocessing import (
    DROP_MISSING_COUNTS,
    EmptyDatasetError,
    SurveyPreprocessor,
    build_imputer,
    coerce_numeric,
    count_missing,
    filter_rows,
    impute_missing,
    prepare_dataset,
    recode_sentinels,
    reverse_items,
    score_traits,
)


ITEMS = [f"bfi_{i:02d}" for i in range(1, 11)]
ITEMS_IN_TRAIT_ORDER = [
    'bfi_01', 'bfi_06', 'bfi_02', 'bfi_07', 'bfi_03', 'bfi_08', 'bfi_04', 'bfi_09', 'bfi_05', 'bfi_10'
]


def _row(n_missing: int) -> dict:
    """One eleven-field row with the first ``n_missing`` fields empty."""
    values = [3.0] * 11
    for i in range(n_missing):
        values[i] = np.nan
    return dict(zip(ITEMS + ['health'], values))


class TestRecoding:
    """Tests for numeric coercion and sentinel recoding."""

    def test_coerce_numeric(self):
        """Test unparseable values become NaN."""
        df = pd.DataFrame({'a': ['1', '2', 'refused'], 'b': [4, 5, None]})
        out = coerce_numeric(df)

        assert out['a'].tolist()[:2] == [1.0, 2.0]
        assert np.isnan(out.loc[2, 'a'])
        assert out['b'].dtype == float

    def test_sentinel_codes_become_missing(self):
        """Test listed codes are recoded and valid answers kept."""
        df = pd.DataFrame({'bfi_01': [1.0, 9.0, -1.0, 3.0]})
        out = recode_sentinels(df, sentinel_codes=[-1, 9])

        assert out['bfi_01'].isna().tolist() == [False, True, True, False]
        assert out.loc[3, 'bfi_01'] == 3.0

    def test_out_of_range_values_become_missing(self):
        """Test values outside the response scale are recoded."""
        df = pd.DataFrame({'bfi_01': [0.0, 1.0, 5.0, 6.0]})
        out = recode_sentinels(df, sentinel_codes=[], valid_ranges={'bfi_01': (1, 5)})

        assert out['bfi_01'].isna().tolist() == [True, False, False, True]

    def test_recoding_is_pure(self):
        """Test the input frame is left untouched."""
        df = pd.DataFrame({'bfi_01': [9.0, 2.0]})
        recode_sentinels(df, sentinel_codes=[9])

        assert df.loc[0, 'bfi_01'] == 9.0


class TestRowFilter:
    """Tests for the missing-count row filter."""

    def test_drop_counts_constant(self):
        """Test the disqualifying counts are exactly 10 and 11."""
        assert DROP_MISSING_COUNTS == frozenset({10, 11})

    def test_rows_with_ten_or_eleven_missing_dropped(self):
        """Test only rows with 10 or 11 missing fields are removed."""
        df = pd.DataFrame([_row(k) for k in range(12)])
        out = filter_rows(df)

        assert count_missing(out).tolist() == list(range(10))
        assert len(out) == 10

    def test_no_retained_row_exceeds_nine_missing(self, raw_survey):
        """Test the filter property on a realistic survey."""
        recoded = recode_sentinels(
            coerce_numeric(raw_survey),
            valid_ranges={col: (1, 5) for col in raw_survey.columns}
        )
        out = filter_rows(recoded)

        assert count_missing(out).max() <= 9
        assert len(out) == len(raw_survey) - 8

    def test_empty_result_raises(self):
        """Test an all-empty dataset is an explicit error."""
        df = pd.DataFrame([_row(10), _row(11)])

        with pytest.raises(EmptyDatasetError, match="No rows left"):
            filter_rows(df)

    def test_filter_is_pure(self):
        """Test the filter returns a copy and keeps the input intact."""
        df = pd.DataFrame([_row(0), _row(11)])
        out = filter_rows(df)

        assert len(df) == 2
        assert out is not df


class TestTraitScoring:
    """Tests for reverse keying and trait scores."""

    def test_reverse_items(self):
        """Test reflection on a 1-5 scale."""
        df = pd.DataFrame({'bfi_01': [1.0, 3.0, 5.0]})
        out = reverse_items(df, ['bfi_01'], scale=(1, 5))

        assert out['bfi_01'].tolist() == [5.0, 3.0, 1.0]

    def test_score_uses_reversed_item(self):
        """Test a trait is the mean of its reflected and plain items."""
        df = pd.DataFrame([_row(0)])
        df['bfi_01'] = 1.0  # reverse-keyed extraversion item -> 5
        df['bfi_06'] = 4.0
        scores = score_traits(df)

        assert scores.loc[0, 'extraversion'] == pytest.approx(4.5)
        assert list(scores.columns) == [
            'extraversion', 'agreeableness', 'conscientiousness', 'neuroticism', 'openness', 'health'
        ]

    def test_score_with_one_item_missing(self):
        """Test a trait falls back to its remaining item."""
        df = pd.DataFrame([_row(0)])
        df['bfi_02'] = np.nan
        df['bfi_07'] = 2.0  # reverse-keyed -> 4
        scores = score_traits(df)

        assert scores.loc[0, 'agreeableness'] == pytest.approx(4.0)

    def test_score_with_both_items_missing(self):
        """Test a trait with no answers stays missing."""
        df = pd.DataFrame([_row(0)])
        df[['bfi_05', 'bfi_10']] = np.nan
        scores = score_traits(df)

        assert np.isnan(scores.loc[0, 'openness'])


class TestImputation:
    """Tests for imputer construction and imputation."""

    @pytest.fixture
    def scored(self, raw_survey):
        """Trait scores with some gaps."""
        scored = SurveyPreprocessor().transform(raw_survey)
        scored.iloc[0:3, 0] = np.nan
        scored.iloc[5, -1] = np.nan
        return scored

    @pytest.mark.parametrize("strategy", ["iterative", "knn", "median"])
    def test_impute_leaves_no_missing(self, scored, strategy):
        """Test every strategy fills all gaps and keeps the frame shape."""
        assert scored.isna().any().any()

        out = impute_missing(scored, strategy=strategy)

        assert not out.isna().any().any()
        assert out.shape == scored.shape
        assert out.index.equals(scored.index)
        assert list(out.columns) == list(scored.columns)

    def test_observed_values_unchanged(self, scored):
        """Test imputation only touches missing cells."""
        out = impute_missing(scored, strategy='median')
        observed = scored.notna().values

        np.testing.assert_array_almost_equal(out.values[observed], scored.values[observed])

    def test_unknown_strategy(self):
        """Test an unknown strategy is rejected."""
        with pytest.raises(ValueError, match="Unknown imputer strategy"):
            build_imputer('mice')


class TestSurveyPreprocessor:
    """Tests for the SurveyPreprocessor class and prepare_dataset."""

    def test_from_config(self):
        """Test configuration values are picked up."""
        config = {
            'data': {'outcome': 'srh', 'sentinel_codes': [99], 'item_scale': [1, 7]},
            'preprocessing': {'drop_missing_counts': [10, 11]}
        }
        preprocessor = SurveyPreprocessor.from_config(config)

        assert preprocessor.outcome == 'srh'
        assert preprocessor.sentinel_codes == [99]
        assert preprocessor.item_scale == (1, 7)
        assert preprocessor.outcome_scale == (1, 7)
        assert preprocessor.columns == ITEMS_IN_TRAIT_ORDER + ['srh']

    def test_missing_column(self, raw_survey):
        """Test absent survey columns are reported."""
        with pytest.raises(KeyError, match="health"):
            SurveyPreprocessor().clean(raw_survey.drop(columns=['health']))

    def test_prepare_dataset(self, raw_survey):
        """Test the full preparation result."""
        result = prepare_dataset(raw_survey, imputer='median')

        expected_keys = ['cleaned', 'scored', 'dataset', 'n_raw', 'n_dropped', 'imputer', 'preprocessor']
        for key in expected_keys:
            assert key in result, f"Missing key: {key}"

        assert result['n_raw'] == 200
        assert result['n_dropped'] == 8
        assert len(result['dataset']) == 192
        assert not result['dataset'].isna().any().any()
        assert result['dataset'][['extraversion', 'health']].min().min() >= 1
        assert result['dataset'][['extraversion', 'health']].max().max() <= 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
