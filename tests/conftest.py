"""Shared fixtures: synthetic BFI-10 survey responses."""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from personality_health.preprocessing import DEFAULT_TRAITS, DEFAULT_REVERSE_KEYED


def make_survey(n_rows: int = 200, seed: int = 42, n_empty: int = 5, n_blank: int = 3) -> pd.DataFrame:
    """
    Simulate raw survey codes on a 1-5 scale.

    Health depends on neuroticism and conscientiousness. A few cells carry
    sentinel codes, ``n_empty`` rows have no item answers (10 missing) and
    ``n_blank`` rows have nothing at all (11 missing).
    """
    rng = np.random.default_rng(seed)
    latent = rng.normal(size=(n_rows, len(DEFAULT_TRAITS)))

    data = {}
    for t, items in enumerate(DEFAULT_TRAITS.values()):
        for item in items:
            values = np.clip(np.rint(3 + latent[:, t] + rng.normal(scale=0.5, size=n_rows)), 1, 5)
            if item in DEFAULT_REVERSE_KEYED:
                values = 6 - values
            data[item] = values

    neuroticism = latent[:, 3]
    conscientiousness = latent[:, 2]
    data['health'] = np.clip(
        np.rint(3 + 0.9 * neuroticism - 0.5 * conscientiousness + rng.normal(scale=0.4, size=n_rows)),
        1, 5
    )
    df = pd.DataFrame(data)

    # Scattered sentinel codes
    cells = rng.choice(df.size, size=n_rows // 10, replace=False)
    for cell in cells:
        row, col = divmod(int(cell), df.shape[1])
        df.iat[row, col] = rng.choice([-1, 8, 9])

    items = [item for pair in DEFAULT_TRAITS.values() for item in pair]
    df.loc[df.index[:n_empty], items] = 9
    df.loc[df.index[n_empty:n_empty + n_blank], :] = -1

    return df


@pytest.fixture
def raw_survey():
    """Raw survey codes with sentinels and unusable respondents."""
    return make_survey()
