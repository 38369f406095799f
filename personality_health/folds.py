"""
Holdout split and cross-validation folds.

The fold assignment is generated once per run and handed to every model so
that all four are tuned and scored on exactly the same resamples.
"""

import logging
from typing import Iterator, List, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, train_test_split

logger = logging.getLogger(__name__)


def split_holdout(
    df: pd.DataFrame,
    holdout_fraction: float = 0.2,
    random_state: int = 42
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split the modelling dataset into training and holdout rows.

    Returns:
        Tuple of (train_df, holdout_df)
    """
    if not 0 < holdout_fraction < 1:
        raise ValueError(f"holdout_fraction must be in (0, 1), got {holdout_fraction}")

    train_df, holdout_df = train_test_split(
        df, test_size=holdout_fraction, random_state=random_state, shuffle=True
    )
    logger.info(f"Train/Holdout split: {len(train_df)} train rows, {len(holdout_df)} holdout rows")
    return train_df, holdout_df


class FoldAssignment:
    """
    Partition of training-row positions into disjoint folds.

    ``fold_ids[i]`` is the fold that training row ``i`` is held out in.
    """

    def __init__(self, fold_ids: np.ndarray):
        self.fold_ids = np.asarray(fold_ids, dtype=int)
        self.n_splits = int(self.fold_ids.max()) + 1 if len(self.fold_ids) else 0

    def __len__(self) -> int:
        return self.n_splits

    @property
    def n_rows(self) -> int:
        return len(self.fold_ids)

    def fold_members(self, fold: int) -> np.ndarray:
        return np.flatnonzero(self.fold_ids == fold)

    def splits(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """Yield (train_idx, test_idx) for each fold, in fold order."""
        for fold in range(self.n_splits):
            test_mask = self.fold_ids == fold
            yield np.flatnonzero(~test_mask), np.flatnonzero(test_mask)

    def as_list(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        """Materialised splits, usable as the ``cv`` argument of scikit-learn searches."""
        return list(self.splits())

    def validate(self) -> None:
        """
        Check that every row sits in exactly one non-empty fold.

        Raises:
            ValueError: If the partition is broken
        """
        if self.n_rows == 0:
            raise ValueError("Fold assignment is empty")

        sizes = np.bincount(self.fold_ids, minlength=self.n_splits)
        if (sizes == 0).any():
            raise ValueError(f"Empty folds: {np.flatnonzero(sizes == 0).tolist()}")

        seen = np.concatenate([test for _, test in self.splits()])
        if len(seen) != self.n_rows or len(np.unique(seen)) != self.n_rows:
            raise ValueError("Folds do not cover every training row exactly once")


def make_folds(
    n_rows: int,
    n_splits: int = 10,
    random_state: int = 42
) -> FoldAssignment:
    """
    Assign each of ``n_rows`` training rows to one of ``n_splits`` folds.

    Raises:
        ValueError: If there are fewer rows than folds
    """
    if n_splits < 2:
        raise ValueError(f"n_splits must be at least 2, got {n_splits}")
    if n_rows < n_splits:
        raise ValueError(f"Cannot build {n_splits} folds from {n_rows} training rows")

    fold_ids = np.empty(n_rows, dtype=int)
    kfold = KFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    for fold, (_, test_idx) in enumerate(kfold.split(np.zeros(n_rows))):
        fold_ids[test_idx] = fold

    folds = FoldAssignment(fold_ids)
    folds.validate()

    logger.info(f"Built {n_splits} cross-validation folds over {n_rows} training rows")
    return folds
