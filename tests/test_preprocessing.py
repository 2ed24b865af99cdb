"""
Test Suite for Preprocessing Module
===================================

Tests for quality bucketing and the derived label columns.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from wine_eda.preprocessing import (
    QUALITY_BUCKETS,
    classify_quality,
    derive_quality_features,
    quality_category,
)
from wine_eda.exceptions import DomainError


class TestClassifyQuality:
    """Tests for the ordered bucket rules."""

    @pytest.mark.parametrize("quality, expected", [
        (1, 'low'),
        (3, 'low'),
        (5, 'low'),
        (6, 'medium'),
        (7, 'medium'),
        (8, 'high'),
        (9, 'high'),
        (10, 'high'),
    ])
    def test_category(self, quality, expected):
        assert quality_category(quality) == expected

    @pytest.mark.parametrize("quality, interval", [
        (5, '(0,5]'),
        (6, '(5,7]'),
        (8, '(7,10]'),
    ])
    def test_interval(self, quality, interval):
        assert classify_quality(quality).interval == interval

    @pytest.mark.parametrize("quality", [0, -1, 11, 10.5])
    def test_out_of_domain(self, quality):
        with pytest.raises(DomainError):
            classify_quality(quality)

    def test_zero_does_not_default_to_low(self):
        with pytest.raises(DomainError, match="outside"):
            quality_category(0)

    def test_missing(self):
        with pytest.raises(DomainError, match="missing"):
            classify_quality(np.nan)

    def test_buckets_partition_domain(self):
        for lower, upper in zip(QUALITY_BUCKETS, QUALITY_BUCKETS[1:]):
            assert lower.upper == upper.lower
        assert QUALITY_BUCKETS[0].lower == 0
        assert QUALITY_BUCKETS[-1].upper == 10


class TestDeriveQualityFeatures:
    """Tests for derive_quality_features."""

    @pytest.fixture
    def sample_data(self):
        return pd.DataFrame({
            'id': np.arange(8),
            'alcohol': np.linspace(9.0, 13.0, 8),
            'quality': [3, 4, 5, 6, 7, 8, 9, 6],
        })

    def test_adds_columns(self, sample_data):
        result = derive_quality_features(sample_data)
        for col in ['quality_ordered', 'quality_bucket', 'quality_category']:
            assert col in result.columns
        assert len(result) == len(sample_data)

    def test_existing_columns_unchanged(self, sample_data):
        original = sample_data.copy()
        result = derive_quality_features(sample_data)

        pd.testing.assert_frame_equal(result[original.columns], original)
        pd.testing.assert_frame_equal(sample_data, original)

    def test_labels(self, sample_data):
        result = derive_quality_features(sample_data)
        assert result['quality_category'].tolist() == [
            'low', 'low', 'low', 'medium', 'medium', 'high', 'high', 'medium'
        ]
        assert result['quality_bucket'].tolist() == [
            '(0,5]', '(0,5]', '(0,5]', '(5,7]', '(5,7]', '(7,10]', '(7,10]', '(5,7]'
        ]

    def test_bucket_and_category_consistent(self, prepared):
        lookup = {b.interval: b.label for b in QUALITY_BUCKETS}
        mapped = prepared['quality_bucket'].astype(str).map(lookup)
        assert (mapped == prepared['quality_category'].astype(str)).all()

    def test_category_matches_quality(self, prepared):
        expected = prepared['quality'].map(quality_category)
        assert (prepared['quality_category'].astype(str) == expected).all()

    def test_quality_ordered_is_ordered(self, sample_data):
        result = derive_quality_features(sample_data)
        ordered = result['quality_ordered']
        assert ordered.cat.ordered
        assert list(ordered.cat.categories) == [3, 4, 5, 6, 7, 8, 9]
        assert ordered.iloc[0] < ordered.iloc[6]

    def test_category_is_ordered(self, sample_data):
        result = derive_quality_features(sample_data)
        assert list(result['quality_category'].cat.categories) == ['low', 'medium', 'high']
        assert result['quality_category'].cat.ordered

    def test_deterministic(self, sample_data):
        first = derive_quality_features(sample_data)
        second = derive_quality_features(sample_data)
        pd.testing.assert_frame_equal(first, second)

    def test_out_of_domain_reports_rows(self, sample_data):
        bad = sample_data.copy()
        bad.loc[2, 'quality'] = 0
        bad.loc[5, 'quality'] = 12
        with pytest.raises(DomainError) as excinfo:
            derive_quality_features(bad)
        message = str(excinfo.value)
        assert "2 rows" in message
        assert "(2, 0)" in message

    def test_missing_quality_column(self):
        with pytest.raises(KeyError):
            derive_quality_features(pd.DataFrame({'alcohol': [10.0]}))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
