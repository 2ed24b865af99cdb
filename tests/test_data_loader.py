"""
Test Suite for Data Loader Module
=================================

Tests for loading, tagging and combining the wine tables.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from wine_eda.data_loader import (
    MEASUREMENT_COLUMNS,
    load_config,
    load_prediction_requests,
    load_wine_data,
    normalize_column_name,
    read_wine_table,
    validate_data,
    get_data_summary,
)
from wine_eda.exceptions import LoadError


class TestNormalizeColumnName:
    """Tests for header normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ('fixed acidity', 'fixed_acidity'),
        ('fixed.acidity', 'fixed_acidity'),
        ('"free sulfur dioxide"', 'free_sulfur_dioxide'),
        ('Fixed_Acidity', 'fixed_acidity'),
        (' alcohol ', 'alcohol'),
        ('pH', 'pH'),
        ('PH', 'pH'),
        ('Unnamed: 0', 'unnamed:_0'),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_column_name(raw) == expected


class TestLoadWineData:
    """Tests for load_wine_data."""

    def test_row_count_is_sum_of_inputs(self, combined, red_frame, white_frame):
        assert len(combined) == len(red_frame) + len(white_frame)

    def test_colors_match_source_file(self, combined, red_frame):
        n_red = len(red_frame)
        assert (combined['color'].iloc[:n_red] == 'red').all()
        assert (combined['color'].iloc[n_red:] == 'white').all()

    def test_id_is_contiguous_and_zero_based(self, combined):
        np.testing.assert_array_equal(combined['id'].to_numpy(), np.arange(len(combined)))

    def test_source_id_column_dropped(self, combined):
        assert 'x' not in combined.columns
        assert 'X' not in combined.columns

    def test_columns_aligned(self, combined):
        assert list(combined.columns) == ['id'] + MEASUREMENT_COLUMNS + ['quality', 'color']

    def test_quality_is_integer(self, combined):
        assert pd.api.types.is_integer_dtype(combined['quality'])

    def test_values_preserved(self, combined, red_frame, white_frame):
        np.testing.assert_allclose(
            combined['alcohol'].iloc[:len(red_frame)].to_numpy(),
            red_frame['alcohol'].to_numpy(),
        )
        np.testing.assert_array_equal(
            combined['quality'].iloc[len(red_frame):].to_numpy(),
            white_frame['quality'].to_numpy(),
        )

    def test_missing_file(self, tmp_path, white_csv):
        with pytest.raises(LoadError, match="not found"):
            load_wine_data(str(tmp_path / "missing.csv"), str(white_csv))

    def test_empty_file(self, tmp_path, red_csv):
        empty = tmp_path / "empty.csv"
        empty.write_text("")
        with pytest.raises(LoadError, match="empty"):
            load_wine_data(str(red_csv), str(empty))

    def test_header_only_file(self, tmp_path, red_csv, red_frame):
        header_only = tmp_path / "header.csv"
        header_only.write_text(",".join(red_frame.columns) + "\n")
        with pytest.raises(LoadError, match="no rows"):
            load_wine_data(str(red_csv), str(header_only))


class TestReadWineTable:
    """Tests for single-file validation."""

    def _write(self, tmp_path, frame, name="wine.csv"):
        path = tmp_path / name
        frame.to_csv(path, index=False)
        return str(path)

    def test_missing_column(self, tmp_path, red_frame):
        path = self._write(tmp_path, red_frame.drop(columns=['sulphates']))
        with pytest.raises(LoadError, match="sulphates"):
            read_wine_table(path, 'red')

    def test_extra_column(self, tmp_path, red_frame):
        frame = red_frame.copy()
        frame['vintage'] = 2009
        path = self._write(tmp_path, frame)
        with pytest.raises(LoadError, match="vintage"):
            read_wine_table(path, 'red')

    def test_non_numeric_column(self, tmp_path, red_frame):
        frame = red_frame.copy()
        frame['alcohol'] = 'strong'
        path = self._write(tmp_path, frame)
        with pytest.raises(LoadError, match="not numeric"):
            read_wine_table(path, 'red')

    def test_non_integer_quality(self, tmp_path, red_frame):
        frame = red_frame.copy().astype({'quality': float})
        frame.loc[3, 'quality'] = 5.5
        path = self._write(tmp_path, frame)
        with pytest.raises(LoadError, match="non-integer"):
            read_wine_table(path, 'red')

    def test_infinite_quality(self, tmp_path, red_frame):
        frame = red_frame.copy().astype({'quality': float})
        frame.loc[0, 'quality'] = np.inf
        path = self._write(tmp_path, frame)
        with pytest.raises(LoadError, match="infinite quality"):
            read_wine_table(path, 'red')

    def test_ragged_row(self, tmp_path, red_frame):
        path = tmp_path / "ragged.csv"
        frame = red_frame.head(5).copy()
        frame.insert(0, 'X', np.arange(1, 6))
        frame.to_csv(path, index=False)
        with open(path, 'a') as f:
            f.write(",".join(["1"] * (frame.shape[1] + 3)) + "\n")
        with pytest.raises(LoadError, match="Could not parse"):
            read_wine_table(str(path), 'red')

    def test_directory_path(self, tmp_path):
        with pytest.raises(LoadError, match="not a regular file"):
            read_wine_table(str(tmp_path), 'red')

    def test_missing_quality(self, tmp_path, red_frame):
        frame = red_frame.copy().astype({'quality': float})
        frame.loc[7, 'quality'] = np.nan
        path = self._write(tmp_path, frame)
        with pytest.raises(LoadError, match="missing quality"):
            read_wine_table(path, 'red')

    def test_negative_measurement(self, tmp_path, red_frame):
        frame = red_frame.copy()
        frame.loc[0, 'chlorides'] = -0.1
        path = self._write(tmp_path, frame)
        with pytest.raises(LoadError, match="negative"):
            read_wine_table(path, 'red')

    def test_tags_color(self, tmp_path, red_frame):
        path = self._write(tmp_path, red_frame)
        df = read_wine_table(path, 'white')
        assert set(df['color']) == {'white'}


class TestPredictionRequests:
    """Tests for load_prediction_requests."""

    def test_loads_predictors(self, tmp_path):
        path = tmp_path / "requests.csv"
        pd.DataFrame({
            'Alcohol': [9.5, 11.0],
            'density': [0.997, 0.994],
            'fixed.acidity': [7.0, 6.5],
        }).to_csv(path, index=False)

        df = load_prediction_requests(str(path), ['alcohol', 'density', 'fixed_acidity'])
        assert list(df.columns) == ['alcohol', 'density', 'fixed_acidity']
        assert len(df) == 2

    def test_missing_predictor(self, tmp_path):
        path = tmp_path / "requests.csv"
        pd.DataFrame({'alcohol': [9.5, 11.0]}).to_csv(path, index=False)
        with pytest.raises(LoadError, match="density"):
            load_prediction_requests(str(path), ['alcohol', 'density'])

    def test_missing_value(self, tmp_path):
        path = tmp_path / "requests.csv"
        pd.DataFrame({'alcohol': [9.5, None], 'density': [0.99, 0.99]}).to_csv(path, index=False)
        with pytest.raises(LoadError, match="missing predictor"):
            load_prediction_requests(str(path), ['alcohol', 'density'])


class TestValidationAndConfig:
    """Tests for validate_data, get_data_summary and load_config."""

    def test_validate_reports_duplicates(self, combined):
        doubled = pd.concat([combined, combined.iloc[:3]], ignore_index=True)
        is_valid, report = validate_data(doubled, strict=False)
        assert not is_valid
        assert any("Duplicate" in issue for issue in report["issues"])

    def test_validate_strict_raises(self, combined):
        doubled = pd.concat([combined, combined.iloc[:3]], ignore_index=True)
        with pytest.raises(LoadError):
            validate_data(doubled, strict=True)

    def test_summary_counts_colors(self, combined, red_frame, white_frame):
        summary = get_data_summary(combined)
        assert summary["rows_by_color"] == {'red': len(red_frame), 'white': len(white_frame)}
        assert 'id' not in summary["statistics"]

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("regression:\n  predictors: [alcohol]\n")
        assert load_config(str(path)) == {'regression': {'predictors': ['alcohol']}}

    def test_load_config_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
