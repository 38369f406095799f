"""
Data Preprocessing Module
=========================

Turns raw survey responses into the modelling dataset.

Functions:
    - coerce_numeric: Convert response columns to floats
    - recode_sentinels: Map refusal / don't-know codes to NaN
    - filter_rows: Drop respondents with no usable personality answers
    - score_traits: Average each trait's (reverse-keyed) item pair
    - impute_missing: Fill remaining gaps with a scikit-learn imputer
"""

import logging
from typing import Dict, Any, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
import numpy as np
from sklearn.experimental import enable_iterative_imputer  # noqa: F401
from sklearn.impute import IterativeImputer, KNNImputer, SimpleImputer

from .data_loader import select_columns

logger = logging.getLogger(__name__)

# Missing-field counts that mark a row as unusable: all ten items missing,
# or all ten items plus the outcome. Tied to the eleven-field encoding.
DROP_MISSING_COUNTS = frozenset({10, 11})

DEFAULT_TRAITS: Dict[str, List[str]] = {
    'extraversion': ['bfi_01', 'bfi_06'],
    'agreeableness': ['bfi_02', 'bfi_07'],
    'conscientiousness': ['bfi_03', 'bfi_08'],
    'neuroticism': ['bfi_04', 'bfi_09'],
    'openness': ['bfi_05', 'bfi_10'],
}
DEFAULT_REVERSE_KEYED = ['bfi_01', 'bfi_07', 'bfi_03', 'bfi_04', 'bfi_05']
DEFAULT_OUTCOME = 'health'
DEFAULT_SENTINEL_CODES = [-9, -8, -7, -6, -5, -4, -3, -2, -1, 7, 8, 9, 97, 98, 99]
DEFAULT_SCALE = (1, 5)

IMPUTER_STRATEGIES = ('iterative', 'knn', 'median')


class EmptyDatasetError(ValueError):
    """Raised when no rows are left to model."""


def coerce_numeric(df: pd.DataFrame) -> pd.DataFrame:
    """Convert every column to numeric, turning unparseable values into NaN."""
    out = df.copy()
    for col in out.columns:
        out[col] = pd.to_numeric(out[col], errors='coerce').astype(float)
    return out


def recode_sentinels(
    df: pd.DataFrame,
    sentinel_codes: Iterable[float] = DEFAULT_SENTINEL_CODES,
    valid_ranges: Optional[Dict[str, Tuple[float, float]]] = None
) -> pd.DataFrame:
    """
    Replace survey missing-value codes with NaN.

    Args:
        df: Numeric response frame
        sentinel_codes: Codes meaning refused / don't know / no answer
        valid_ranges: Optional {column: (low, high)}; values outside the
            range are treated as missing as well

    Returns:
        New DataFrame with sentinels replaced
    """
    out = df.copy()
    codes = list(sentinel_codes)

    for col in out.columns:
        mask = out[col].isin(codes)
        if valid_ranges and col in valid_ranges:
            low, high = valid_ranges[col]
            mask |= (out[col] < low) | (out[col] > high)
        n_recoded = int(mask.sum())
        if n_recoded:
            logger.debug(f"Recoded {n_recoded} sentinel values in '{col}'")
        out.loc[mask, col] = np.nan

    return out


def count_missing(df: pd.DataFrame) -> pd.Series:
    """Number of missing fields per row."""
    return df.isna().sum(axis=1)


def filter_rows(
    df: pd.DataFrame,
    drop_counts: Iterable[int] = DROP_MISSING_COUNTS
) -> pd.DataFrame:
    """
    Drop rows whose missing-field count is one of ``drop_counts``.

    Args:
        df: Recoded response frame (items + outcome)
        drop_counts: Exact missing counts that disqualify a row

    Returns:
        Filtered copy of the frame

    Raises:
        EmptyDatasetError: If no row survives
    """
    drop_counts = set(drop_counts)
    missing = count_missing(df)
    keep = ~missing.isin(drop_counts)
    out = df.loc[keep].copy()

    logger.info(f"Row filter: kept {len(out)} of {len(df)} rows ({int((~keep).sum())} dropped)")

    if out.empty:
        raise EmptyDatasetError(
            f"No rows left after dropping rows with {sorted(drop_counts)} missing fields"
        )

    return out


def reverse_items(
    df: pd.DataFrame,
    columns: Iterable[str],
    scale: Tuple[float, float] = DEFAULT_SCALE
) -> pd.DataFrame:
    """Reflect reverse-keyed items on the response scale (low + high - x)."""
    out = df.copy()
    low, high = scale
    for col in columns:
        if col in out.columns:
            out[col] = low + high - out[col]
    return out


def score_traits(
    df: pd.DataFrame,
    traits: Dict[str, Sequence[str]] = DEFAULT_TRAITS,
    outcome: str = DEFAULT_OUTCOME,
    reverse_keyed: Iterable[str] = DEFAULT_REVERSE_KEYED,
    scale: Tuple[float, float] = DEFAULT_SCALE
) -> pd.DataFrame:
    """
    Compute one score per trait as the mean of its available items.

    A trait is NaN only when all of its items are missing.

    Returns:
        DataFrame with one column per trait followed by the outcome column
    """
    reversed_df = reverse_items(df, reverse_keyed, scale)

    scores = pd.DataFrame(index=df.index)
    for trait, items in traits.items():
        scores[trait] = reversed_df[list(items)].mean(axis=1, skipna=True)
    scores[outcome] = df[outcome]

    return scores


def build_imputer(strategy: str = 'iterative', random_state: int = 42, **kwargs):
    """
    Create the scikit-learn imputer for a strategy name.

    Raises:
        ValueError: On an unknown strategy
    """
    if strategy == 'iterative':
        return IterativeImputer(
            max_iter=kwargs.get('max_iter', 10),
            random_state=random_state,
            sample_posterior=kwargs.get('sample_posterior', False)
        )
    if strategy == 'knn':
        return KNNImputer(n_neighbors=kwargs.get('n_neighbors', 5))
    if strategy == 'median':
        return SimpleImputer(strategy='median')

    raise ValueError(f"Unknown imputer strategy: {strategy}. Choose from: {', '.join(IMPUTER_STRATEGIES)}")


def impute_missing(
    df: pd.DataFrame,
    strategy: str = 'iterative',
    random_state: int = 42,
    **kwargs
) -> pd.DataFrame:
    """
    Fill every missing value in the dataset.

    Args:
        df: Trait + outcome frame, NaN allowed
        strategy: One of 'iterative', 'knn', 'median'
        random_state: Seed for the iterative imputer

    Returns:
        Frame with the same index and columns and no missing values
    """
    if df.empty:
        raise EmptyDatasetError("Cannot impute an empty dataset")

    n_missing = int(df.isna().sum().sum())
    imputer = build_imputer(strategy, random_state=random_state, **kwargs)
    values = imputer.fit_transform(df.values)

    out = pd.DataFrame(values, index=df.index, columns=df.columns)
    if out.isna().any().any():
        raise ValueError(f"Imputer '{strategy}' left missing values in the dataset")

    logger.info(f"Imputed {n_missing} missing values with '{strategy}' imputer")
    return out


class SurveyPreprocessor:
    """
    Cleaning pipeline for the personality/health survey.

    Selects the item and outcome columns, recodes sentinel codes, drops
    respondents with no usable answers and scores the five traits.
    """

    def __init__(
        self,
        traits: Optional[Dict[str, Sequence[str]]] = None,
        outcome: str = DEFAULT_OUTCOME,
        reverse_keyed: Optional[Iterable[str]] = None,
        sentinel_codes: Optional[Iterable[float]] = None,
        item_scale: Tuple[float, float] = DEFAULT_SCALE,
        outcome_scale: Optional[Tuple[float, float]] = None,
        drop_missing_counts: Iterable[int] = DROP_MISSING_COUNTS
    ):
        """
        Initialize the preprocessor.

        Args:
            traits: {trait: [item columns]}
            outcome: Health outcome column
            reverse_keyed: Item columns scored in reverse
            sentinel_codes: Codes treated as missing
            item_scale: (low, high) response range of the items
            outcome_scale: (low, high) range of the outcome, defaults to item_scale
            drop_missing_counts: Missing counts that disqualify a row
        """
        self.traits = dict(traits) if traits is not None else dict(DEFAULT_TRAITS)
        self.outcome = outcome
        self.reverse_keyed = list(reverse_keyed) if reverse_keyed is not None else list(DEFAULT_REVERSE_KEYED)
        self.sentinel_codes = list(sentinel_codes) if sentinel_codes is not None else list(DEFAULT_SENTINEL_CODES)
        self.item_scale = tuple(item_scale)
        self.outcome_scale = tuple(outcome_scale) if outcome_scale is not None else self.item_scale
        self.drop_missing_counts = frozenset(drop_missing_counts)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'SurveyPreprocessor':
        """Build a preprocessor from the 'data' and 'preprocessing' config sections."""
        data_config = config.get('data', {})
        prep_config = config.get('preprocessing', {})

        outcome_scale = data_config.get('outcome_scale')
        return cls(
            traits=data_config.get('traits', DEFAULT_TRAITS),
            outcome=data_config.get('outcome', DEFAULT_OUTCOME),
            reverse_keyed=data_config.get('reverse_keyed', DEFAULT_REVERSE_KEYED),
            sentinel_codes=data_config.get('sentinel_codes', DEFAULT_SENTINEL_CODES),
            item_scale=tuple(data_config.get('item_scale', DEFAULT_SCALE)),
            outcome_scale=tuple(outcome_scale) if outcome_scale else None,
            drop_missing_counts=prep_config.get('drop_missing_counts', DROP_MISSING_COUNTS)
        )

    @property
    def item_columns(self) -> List[str]:
        return [item for items in self.traits.values() for item in items]

    @property
    def columns(self) -> List[str]:
        """Raw columns read from the survey file: items then outcome."""
        return self.item_columns + [self.outcome]

    @property
    def feature_columns(self) -> List[str]:
        return list(self.traits)

    def valid_ranges(self) -> Dict[str, Tuple[float, float]]:
        ranges = {item: self.item_scale for item in self.item_columns}
        ranges[self.outcome] = self.outcome_scale
        return ranges

    def clean(self, df: pd.DataFrame) -> pd.DataFrame:
        """Select, coerce and recode the raw columns, then drop unusable rows."""
        out = coerce_numeric(select_columns(df, self.columns))
        out = recode_sentinels(out, self.sentinel_codes, self.valid_ranges())
        return filter_rows(out, self.drop_missing_counts)

    def score(self, cleaned: pd.DataFrame) -> pd.DataFrame:
        return score_traits(
            cleaned,
            traits=self.traits,
            outcome=self.outcome,
            reverse_keyed=self.reverse_keyed,
            scale=self.item_scale
        )

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Clean raw responses and return trait scores plus the outcome."""
        return self.score(self.clean(df))


def prepare_dataset(
    df: pd.DataFrame,
    preprocessor: Optional[SurveyPreprocessor] = None,
    imputer: str = 'iterative',
    random_state: int = 42
) -> Dict[str, Any]:
    """
    Complete data preparation: cleaning, trait scoring and imputation.

    Args:
        df: Raw survey frame
        preprocessor: Configured SurveyPreprocessor (defaults used if None)
        imputer: Imputation strategy
        random_state: Seed for the imputer

    Returns:
        Dictionary containing:
            - cleaned: Recoded item-level frame after row filtering
            - scored: Trait scores with NaN where a trait had no answers
            - dataset: Imputed trait + outcome frame
            - n_raw, n_dropped: Row counts
            - preprocessor: The SurveyPreprocessor used
    """
    if preprocessor is None:
        preprocessor = SurveyPreprocessor()

    logger.info("=" * 60)
    logger.info("STARTING DATA PREPARATION")
    logger.info("=" * 60)

    cleaned = preprocessor.clean(df)
    scored = preprocessor.score(cleaned)
    dataset = impute_missing(scored, strategy=imputer, random_state=random_state)

    result = {
        'cleaned': cleaned,
        'scored': scored,
        'dataset': dataset,
        'n_raw': len(df),
        'n_dropped': len(df) - len(cleaned),
        'imputer': imputer,
        'preprocessor': preprocessor
    }

    logger.info("=" * 60)
    logger.info("DATA PREPARATION COMPLETE")
    logger.info(f"  Rows kept: {len(dataset)} of {len(df)}")
    logger.info(f"  Features: {preprocessor.feature_columns}")
    logger.info(f"  Outcome: {preprocessor.outcome}")
    logger.info("=" * 60)

    return result


def print_preprocessing_summary(result: Dict[str, Any]) -> None:
    """
    Print a summary of the preparation results.

    Args:
        result: Dictionary from prepare_dataset
    """
    scored = result['scored']
    print("\n" + "=" * 50)
    print("PREPARATION SUMMARY")
    print("=" * 50)
    print(f"Raw rows: {result['n_raw']}")
    print(f"Dropped rows: {result['n_dropped']}")
    print(f"Modelling rows: {len(result['dataset'])}")
    print(f"Imputer: {result['imputer']}")
    print("\nMissing values before imputation:")
    for col, n in scored.isna().sum().items():
        print(f"  {col}: {n}")
    print("=" * 50 + "\n")
