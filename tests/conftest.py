"""
Shared fixtures for the test suite.
"""

import matplotlib
matplotlib.use("Agg")

import csv
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from wine_eda.data_loader import MEASUREMENT_COLUMNS


def make_wine_frame(n_samples: int, seed: int, red: bool = True) -> pd.DataFrame:
    """
    Synthetic table with the wine schema.

    Quality rises with alcohol, density falls with alcohol but carries its
    own noise, so each regression predictor adds some signal.
    """
    rng = np.random.default_rng(seed)

    alcohol = np.clip(rng.normal(10.4, 1.1, n_samples), 8.0, 15.0)
    fixed_acidity = np.clip(rng.normal(8.3 if red else 6.9, 1.2, n_samples), 3.8, 15.9)
    density = 1.01 - 0.0015 * alcohol + rng.normal(0, 0.0012, n_samples)
    sugar = np.clip(rng.gamma(2.0, 1.3 if red else 3.0, n_samples), 0.6, 65.0)

    data = {
        'fixed_acidity': fixed_acidity,
        'volatile_acidity': np.clip(rng.normal(0.5 if red else 0.28, 0.1, n_samples), 0.08, 1.6),
        'citric_acid': np.clip(rng.normal(0.3, 0.12, n_samples), 0.0, 1.0),
        'residual_sugar': sugar,
        'chlorides': np.clip(rng.normal(0.06, 0.02, n_samples), 0.01, 0.6),
        'free_sulfur_dioxide': np.clip(rng.normal(25, 10, n_samples), 1, 289),
        'total_sulfur_dioxide': np.clip(rng.normal(90 if red else 138, 30, n_samples), 6, 440),
        'density': density,
        'pH': np.clip(rng.normal(3.25, 0.15, n_samples), 2.7, 4.0),
        'sulphates': np.clip(rng.normal(0.55, 0.12, n_samples), 0.22, 2.0),
        'alcohol': alcohol,
    }
    signal = 5.8 + 0.45 * (alcohol - 10.4) - 150 * (density - density.mean()) \
        + 0.08 * (fixed_acidity - fixed_acidity.mean())
    quality = np.clip(np.round(signal + rng.normal(0, 0.6, n_samples)), 3, 9).astype(int)

    df = pd.DataFrame(data)[MEASUREMENT_COLUMNS]
    df['quality'] = quality
    return df


@pytest.fixture
def red_frame():
    return make_wine_frame(160, seed=1, red=True)


@pytest.fixture
def white_frame():
    return make_wine_frame(240, seed=2, red=False)


@pytest.fixture
def red_csv(tmp_path, red_frame):
    """Red data in the tidy export layout: comma separated, dotted names, 'X' row ids."""
    frame = red_frame.copy()
    frame.columns = [c.replace('_', '.') for c in frame.columns]
    frame.insert(0, 'X', np.arange(1, len(frame) + 1))
    path = tmp_path / "reds.csv"
    frame.to_csv(path, index=False)
    return path


@pytest.fixture
def white_csv(tmp_path, white_frame):
    """White data in the UCI layout: semicolon separated, quoted spaced names."""
    frame = white_frame.copy()
    frame.columns = [c.replace('_', ' ') for c in frame.columns]
    path = tmp_path / "whites.csv"
    frame.to_csv(path, index=False, sep=';', quoting=csv.QUOTE_NONNUMERIC)
    return path


@pytest.fixture
def combined(red_csv, white_csv):
    from wine_eda.data_loader import load_wine_data
    return load_wine_data(str(red_csv), str(white_csv))


@pytest.fixture
def prepared(combined):
    from wine_eda.preprocessing import derive_quality_features
    return derive_quality_features(combined)
