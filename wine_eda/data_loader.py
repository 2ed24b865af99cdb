"""
Data Loader Module
==================

Handles CSV ingestion, validation, and basic data quality checks for the
red and white wine quality tables.

Functions:
    - load_config: Load YAML configuration file
    - read_wine_table: Load one color's CSV with column normalization
    - load_wine_data: Load, tag, and combine the red and white tables
    - load_prediction_requests: Load predictor rows to be scored
    - validate_data: Check data quality constraints
    - get_data_summary: Generate basic statistics
"""

import os
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import numpy as np
import yaml

from .exceptions import LoadError

logger = logging.getLogger(__name__)

MEASUREMENT_COLUMNS = [
    'fixed_acidity',
    'volatile_acidity',
    'citric_acid',
    'residual_sugar',
    'chlorides',
    'free_sulfur_dioxide',
    'total_sulfur_dioxide',
    'density',
    'pH',
    'sulphates',
    'alcohol',
]
TARGET_COLUMN = 'quality'
COLOR_COLUMN = 'color'
ID_COLUMN = 'id'
COLORS = ['red', 'white']

# Row identifiers written by R/pandas exports, after normalization
_SOURCE_ID_COLUMNS = {'x', 'id', ''}


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    logger.info(f"Loaded configuration from {config_path}")
    return config or {}


def normalize_column_name(name: str) -> str:
    """
    Normalize a header so 'fixed acidity', "fixed.acidity" and
    'Fixed_Acidity' all map to 'fixed_acidity'. pH keeps its usual casing.
    """
    normalized = str(name).strip().strip('"').strip("'").strip()
    normalized = normalized.replace('.', '_').replace(' ', '_').lower()
    if normalized == 'ph':
        return 'pH'
    return normalized


def _is_source_id_column(name: str) -> bool:
    return name in _SOURCE_ID_COLUMNS or name.startswith('unnamed')


def _detect_delimiter(file_path: Path) -> str:
    """The UCI files use ';', the tidy exports ','. Decide from the header."""
    try:
        with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
            header = f.readline()
    except OSError as e:
        raise LoadError(f"Could not read {file_path}: {e}") from e
    if not header.strip():
        raise LoadError(f"Data file is empty: {file_path}")
    return ';' if header.count(';') > header.count(',') else ','


def _read_delimited(file_path: Path) -> pd.DataFrame:
    """Read a delimited file and normalize its headers."""
    if not file_path.exists():
        raise LoadError(f"Data file not found: {file_path}")
    if not file_path.is_file():
        raise LoadError(f"Data path is not a regular file: {file_path}")

    sep = _detect_delimiter(file_path)
    try:
        df = pd.read_csv(file_path, sep=sep)
    except pd.errors.EmptyDataError as e:
        raise LoadError(f"Data file is empty: {file_path}") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise LoadError(f"Could not parse {file_path}: {e}") from e
    except OSError as e:
        raise LoadError(f"Could not read {file_path}: {e}") from e

    if df.empty:
        raise LoadError(f"Data file has a header but no rows: {file_path}")

    df.columns = [normalize_column_name(c) for c in df.columns]

    id_columns = [c for c in df.columns if _is_source_id_column(c)]
    if id_columns:
        logger.debug(f"Dropping source row identifier columns {id_columns} from {file_path}")
        df = df.drop(columns=id_columns)

    return df


def _check_columns(
    df: pd.DataFrame,
    required: List[str],
    file_path: Path,
    allow_extra: bool = False
) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise LoadError(
            f"{file_path} is missing expected columns {missing}. "
            f"Columns found: {list(df.columns)}"
        )

    extra = [c for c in df.columns if c not in required]
    if extra and not allow_extra:
        raise LoadError(
            f"{file_path} has {df.shape[1]} columns, expected {len(required)}. "
            f"Unexpected columns: {extra}"
        )

    for col in required:
        if not pd.api.types.is_numeric_dtype(df[col]):
            raise LoadError(
                f"Column '{col}' in {file_path} is not numeric "
                f"(dtype {df[col].dtype})"
            )
        negative = df.index[df[col] < 0].tolist()
        if negative:
            raise LoadError(
                f"Column '{col}' in {file_path} has negative values "
                f"at rows {negative[:10]}"
            )


def read_wine_table(file_path: str, color: str) -> pd.DataFrame:
    """
    Load one color's wine table and tag every row with that color.

    Args:
        file_path: Path to a ';' or ',' delimited file with the eleven
            measurement columns, quality, and optionally a row identifier
        color: Color label for every row ('red' or 'white')

    Returns:
        DataFrame with measurement columns, integer quality and color

    Raises:
        LoadError: If the file is missing, empty, or malformed
    """
    file_path = Path(file_path)
    df = _read_delimited(file_path)

    required = MEASUREMENT_COLUMNS + [TARGET_COLUMN]
    _check_columns(df, required, file_path)

    quality = df[TARGET_COLUMN]
    missing_rows = df.index[quality.isna()].tolist()
    if missing_rows:
        raise LoadError(f"{file_path} has missing quality values at rows {missing_rows[:10]}")

    infinite = df.index[~np.isfinite(quality)].tolist()
    if infinite:
        raise LoadError(f"{file_path} has infinite quality values at rows {infinite[:10]}")

    non_integral = df.index[quality != np.round(quality)].tolist()
    if non_integral:
        raise LoadError(
            f"{file_path} has non-integer quality values at rows {non_integral[:10]}: "
            f"{quality.loc[non_integral[:10]].tolist()}"
        )

    df = df[required].copy()
    df[TARGET_COLUMN] = quality.astype('int64')
    df[COLOR_COLUMN] = color

    logger.info(f"Loaded {color} data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")
    return df


def load_wine_data(red_path: str, white_path: str) -> pd.DataFrame:
    """
    Load both wine tables and combine them into one.

    Source row identifiers are discarded and replaced by a contiguous,
    zero-based 'id' column over the combined rows.

    Args:
        red_path: Path to the red wine file
        white_path: Path to the white wine file

    Returns:
        Combined DataFrame with columns id, measurements, quality, color

    Raises:
        LoadError: If either file is missing, empty, or malformed
    """
    red = read_wine_table(red_path, 'red')
    white = read_wine_table(white_path, 'white')

    df = pd.concat([red, white], ignore_index=True)
    df[COLOR_COLUMN] = pd.Categorical(df[COLOR_COLUMN], categories=COLORS)
    df.insert(0, ID_COLUMN, np.arange(len(df), dtype='int64'))

    logger.info(
        f"Combined data: {len(df)} rows ({len(red)} red, {len(white)} white) × {df.shape[1]} columns"
    )
    return df


def load_prediction_requests(file_path: str, predictors: List[str]) -> pd.DataFrame:
    """
    Load a file of new rows to score with a fitted model.

    Only the predictor columns are required; other columns are kept.

    Args:
        file_path: Path to the request file
        predictors: Columns the model needs

    Returns:
        DataFrame of prediction requests

    Raises:
        LoadError: If the file is missing, empty, or lacks a predictor column
    """
    file_path = Path(file_path)
    df = _read_delimited(file_path)
    _check_columns(df, predictors, file_path, allow_extra=True)

    incomplete = df.index[df[predictors].isna().any(axis=1)].tolist()
    if incomplete:
        raise LoadError(
            f"{file_path} has missing predictor values at rows {incomplete[:10]}"
        )

    logger.info(f"Loaded {len(df)} prediction requests from {file_path}")
    return df.reset_index(drop=True)


def validate_data(df: pd.DataFrame, strict: bool = True) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate data quality constraints on the combined table.

    Checks:
        - No missing measurements
        - No duplicate samples
        - Outliers beyond 4 standard deviations

    Args:
        df: DataFrame to validate
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "column_names": list(df.columns),
        "issues": []
    }

    measurements = [c for c in MEASUREMENT_COLUMNS if c in df.columns]

    # Check 1: Missing values
    missing_counts = df[measurements].isnull().sum()
    total_missing = missing_counts.sum()
    if total_missing > 0:
        missing_pct = (total_missing / (df.shape[0] * len(measurements))) * 100
        issue = f"Missing values: {total_missing} ({missing_pct:.2f}%)"
        report["issues"].append(issue)
        report["missing_by_column"] = missing_counts[missing_counts > 0].to_dict()
        logger.warning(issue)

    # Check 2: Duplicate samples (ignoring the generated id)
    duplicates = df.drop(columns=[ID_COLUMN], errors='ignore').duplicated().sum()
    if duplicates > 0:
        issue = f"Duplicate rows found: {duplicates}"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 3: Data range (check for potential outliers)
    for col in measurements:
        col_std = df[col].std()
        col_mean = df[col].mean()
        outliers = ((df[col] - col_mean).abs() > 4 * col_std).sum()
        if outliers > 0:
            issue = f"Column '{col}' has {outliers} potential outliers (>4 std)"
            report["issues"].append(issue)
            logger.warning(issue)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise LoadError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def get_data_summary(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Generate summary statistics for the dataset.

    Args:
        df: DataFrame to summarize

    Returns:
        Dictionary containing summary statistics
    """
    summary = {
        "shape": df.shape,
        "columns": list(df.columns),
        "dtypes": df.dtypes.astype(str).to_dict(),
        "memory_usage_mb": df.memory_usage(deep=True).sum() / 1024 / 1024,
        "rows_by_color": {},
        "statistics": {}
    }

    if COLOR_COLUMN in df.columns:
        counts = df[COLOR_COLUMN].value_counts(sort=False)
        summary["rows_by_color"] = {str(k): int(v) for k, v in counts.items()}

    for col in df.select_dtypes(include=[np.number]).columns:
        if col == ID_COLUMN:
            continue
        summary["statistics"][col] = {
            "count": int(df[col].count()),
            "mean": float(df[col].mean()),
            "std": float(df[col].std()),
            "min": float(df[col].min()),
            "25%": float(df[col].quantile(0.25)),
            "50%": float(df[col].quantile(0.50)),
            "75%": float(df[col].quantile(0.75)),
            "max": float(df[col].max()),
        }

    return summary


def print_data_summary(df: pd.DataFrame) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
    """
    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"Memory Usage: {df.memory_usage(deep=True).sum() / 1024:.2f} KB")

    if COLOR_COLUMN in df.columns:
        print("\nRows by color:")
        for color, count in df[COLOR_COLUMN].value_counts(sort=False).items():
            print(f"  {color}: {count}")

    print("\nColumn Information:")
    print("-" * 40)

    for col in df.columns:
        dtype = df[col].dtype
        non_null = df[col].count()
        null_pct = (1 - non_null / len(df)) * 100
        print(f"  {col}: {dtype} | {non_null} non-null ({null_pct:.1f}% missing)")

    print("\nBasic Statistics:")
    print("-" * 40)
    print(df.drop(columns=[ID_COLUMN], errors='ignore').describe().round(4).to_string())
    print("=" * 60 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    red_path = "data/raw/wineQualityReds.csv"
    white_path = "data/raw/wineQualityWhites.csv"
    if os.path.exists(red_path) and os.path.exists(white_path):
        df = load_wine_data(red_path, white_path)
        print_data_summary(df)
        is_valid, report = validate_data(df, strict=False)
        print(f"Validation passed: {is_valid}")
    else:
        print(f"No data files found at {red_path} and {white_path}")
