"""
Data Preprocessing Module
=========================

Derives categorical quality labels from the integer quality score.

The bucket boundaries and their labels are kept in one ordered rule list,
QUALITY_BUCKETS. Rules are tested in order and the first match wins.

Functions:
    - classify_quality: Map one quality score to its bucket rule
    - derive_quality_features: Append quality_ordered, quality_bucket and
      quality_category columns to a table
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

import pandas as pd
import numpy as np

from .exceptions import DomainError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityBucket:
    """A right-closed quality interval (lower, upper] and its label."""

    lower: int
    upper: int
    label: str

    def contains(self, quality: float) -> bool:
        return self.lower < quality <= self.upper

    @property
    def interval(self) -> str:
        return f"({self.lower},{self.upper}]"


QUALITY_BUCKETS: List[QualityBucket] = [
    QualityBucket(0, 5, 'low'),
    QualityBucket(5, 7, 'medium'),
    QualityBucket(7, 10, 'high'),
]

BUCKET_INTERVALS = [b.interval for b in QUALITY_BUCKETS]
CATEGORY_LABELS = [b.label for b in QUALITY_BUCKETS]

DERIVED_COLUMNS = ['quality_ordered', 'quality_bucket', 'quality_category']


def classify_quality(quality: float) -> QualityBucket:
    """
    Find the bucket rule for a quality score.

    Args:
        quality: Quality score

    Returns:
        The first QualityBucket whose interval contains the score

    Raises:
        DomainError: If the score is missing or outside (0, 10]
    """
    if quality is None or pd.isna(quality):
        raise DomainError("Quality score is missing")

    for bucket in QUALITY_BUCKETS:
        if bucket.contains(quality):
            return bucket

    raise DomainError(
        f"Quality score {quality} is outside the bucketed range "
        f"({QUALITY_BUCKETS[0].lower},{QUALITY_BUCKETS[-1].upper}]"
    )


def quality_category(quality: float) -> str:
    """Return the low/medium/high label for a quality score."""
    return classify_quality(quality).label


def derive_quality_features(
    df: pd.DataFrame,
    quality_column: str = 'quality',
    id_column: Optional[str] = 'id'
) -> pd.DataFrame:
    """
    Append the derived quality columns to a copy of the table.

    Adds:
        - quality_ordered: quality as an ordered categorical over the observed scores
        - quality_bucket: '(0,5]', '(5,7]' or '(7,10]'
        - quality_category: 'low', 'medium' or 'high'

    Args:
        df: Table with a quality column
        quality_column: Name of the quality column
        id_column: Column used to identify offending rows in errors

    Returns:
        New DataFrame with the three derived columns appended

    Raises:
        DomainError: If any quality score is missing or outside (0, 10]
    """
    if quality_column not in df.columns:
        raise KeyError(f"Column '{quality_column}' not found. Columns: {list(df.columns)}")

    quality = df[quality_column]

    # Evaluate the rules once per distinct score, not once per row
    lookup: Dict[Any, QualityBucket] = {}
    bad_values = []
    for value in quality.unique():
        try:
            lookup[value] = classify_quality(value)
        except DomainError:
            bad_values.append(value)

    if bad_values:
        bad_mask = ~quality.isin(list(lookup))
        row_ids = df.loc[bad_mask, id_column] if id_column in df.columns else df.index[bad_mask]
        offenders = list(zip(row_ids.tolist()[:10], quality[bad_mask].tolist()[:10]))
        raise DomainError(
            f"{int(bad_mask.sum())} rows have {quality_column} outside "
            f"({QUALITY_BUCKETS[0].lower},{QUALITY_BUCKETS[-1].upper}]; "
            f"first (row, value) pairs: {offenders}"
        )

    buckets = quality.map(lookup)

    result = df.copy()
    result['quality_ordered'] = pd.Categorical(
        quality, categories=sorted(lookup), ordered=True
    )
    result['quality_bucket'] = pd.Categorical(
        buckets.map(lambda b: b.interval), categories=BUCKET_INTERVALS, ordered=True
    )
    result['quality_category'] = pd.Categorical(
        buckets.map(lambda b: b.label), categories=CATEGORY_LABELS, ordered=True
    )

    counts = result['quality_category'].value_counts(sort=False).to_dict()
    logger.info(f"Derived quality categories: {counts}")

    return result


def print_preprocessing_summary(df: pd.DataFrame) -> None:
    """
    Print counts per quality category and color.

    Args:
        df: Table returned by derive_quality_features
    """
    print("\n" + "=" * 50)
    print("QUALITY CATEGORIES")
    print("=" * 50)
    for bucket in QUALITY_BUCKETS:
        print(f"  {bucket.label:<8} {bucket.interval:<8} "
              f"{int((df['quality_category'] == bucket.label).sum())} rows")

    if 'color' in df.columns:
        print("\nBy color:")
        table = pd.crosstab(df['color'], df['quality_category'])
        print(table.to_string())
    print("=" * 50 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    rng = np.random.default_rng(42)
    sample_df = pd.DataFrame({
        'id': np.arange(20),
        'quality': rng.integers(3, 10, size=20),
    })

    derived = derive_quality_features(sample_df)
    print(derived.head(10))
    print_preprocessing_summary(derived)
