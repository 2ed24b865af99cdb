"""
Prediction Module
=================

Scores new rows with a fitted quality model and reports prediction intervals.

Features:
    - Point estimates with t-based prediction intervals
    - Optional guard against extrapolating past the training data
    - Average interval offsets across all requests
    - Export predictions to CSV and a JSON report
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, List, Optional
from datetime import datetime

import numpy as np
import pandas as pd
from scipy import stats

from .model import QualityRegressionModel
from .exceptions import InsufficientDataError, OutOfRangeError

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_LEVEL = 0.95


def check_extrapolation(
    model: QualityRegressionModel,
    new_rows: pd.DataFrame,
    max_extrapolation: float
) -> None:
    """
    Reject rows whose predictors fall far outside the training range.

    A value is accepted within [min - f·range, max + f·range] where f is
    `max_extrapolation` and range is the training max minus min.

    Raises:
        OutOfRangeError: On the first offending row and column
    """
    for col in model.predictors:
        bounds = model.predictor_ranges_[col]
        span = bounds['max'] - bounds['min']
        lower = bounds['min'] - max_extrapolation * span
        upper = bounds['max'] + max_extrapolation * span

        values = new_rows[col]
        outside = values[(values < lower) | (values > upper)]
        if not outside.empty:
            row = outside.index[0]
            raise OutOfRangeError(
                f"Row {row}: {col}={outside.iloc[0]} is outside the accepted range "
                f"[{lower:.6g}, {upper:.6g}] ({len(outside)} rows affected)"
            )


def predict_with_intervals(
    model: QualityRegressionModel,
    new_rows: pd.DataFrame,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    max_extrapolation: Optional[float] = None
) -> pd.DataFrame:
    """
    Point estimates and prediction intervals for new rows.

    The half-width for a row x0 is
        t(1 - α/2, n - p - 1) · s · sqrt(1 + x0 (XᵀX)⁻¹ x0ᵀ)
    where s is the residual standard error of the fitted model.

    Args:
        model: Fitted QualityRegressionModel
        new_rows: Table containing at least the model's predictors
        confidence_level: Interval coverage (default 0.95)
        max_extrapolation: Enable the range guard with this fraction of the
            training range as tolerance (default: disabled)

    Returns:
        DataFrame with the predictor values and fit, lower, upper columns

    Raises:
        InsufficientDataError: If the model has no residual degrees of freedom
        OutOfRangeError: If the guard is enabled and a row extrapolates
    """
    if not 0 < confidence_level < 1:
        raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")

    missing = [c for c in model.predictors if c not in new_rows.columns]
    if missing:
        raise ValueError(f"Prediction rows are missing predictor columns {missing}")

    incomplete = new_rows.index[new_rows[model.predictors].isna().any(axis=1)].tolist()
    if incomplete:
        raise ValueError(f"Prediction rows {incomplete[:10]} have missing predictor values")

    if model.df_resid is None or model.df_resid < 1:
        raise InsufficientDataError(
            f"Model '{model.name}' has {model.df_resid} residual degrees of freedom; "
            f"prediction intervals need at least 1"
        )

    if max_extrapolation is not None:
        check_extrapolation(model, new_rows, max_extrapolation)

    fit = model.predict(new_rows)
    leverage = model.leverage(new_rows)

    t_critical = stats.t.ppf(1 - (1 - confidence_level) / 2, model.df_resid)
    half_width = t_critical * model.residual_std_error * np.sqrt(1 + leverage)

    result = new_rows[model.predictors].copy()
    result['fit'] = fit
    result['lower'] = fit - half_width
    result['upper'] = fit + half_width

    logger.info(
        f"Scored {len(result)} rows with '{model.name}' "
        f"(t={t_critical:.4f}, df={model.df_resid}, level={confidence_level})"
    )
    return result


def summarize_intervals(
    predictions: pd.DataFrame,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
) -> Dict[str, float]:
    """
    Average interval offsets across all predictions.

    Args:
        predictions: Output of predict_with_intervals
        confidence_level: Level the intervals were computed at

    Returns:
        Dictionary with mean_lower_offset (mean of lower - fit),
        mean_upper_offset (mean of upper - fit), mean_width and counts
    """
    if predictions.empty:
        raise ValueError("No predictions to summarize")

    lower_offset = predictions['lower'] - predictions['fit']
    upper_offset = predictions['upper'] - predictions['fit']

    return {
        'n_predictions': int(len(predictions)),
        'confidence_level': float(confidence_level),
        'mean_lower_offset': float(lower_offset.mean()),
        'mean_upper_offset': float(upper_offset.mean()),
        'mean_width': float((predictions['upper'] - predictions['lower']).mean()),
    }


def sample_prediction_requests(
    df: pd.DataFrame,
    predictors: List[str],
    sample_size: int = 100,
    random_state: int = 42
) -> pd.DataFrame:
    """Draw a reproducible sample of training rows to stand in for new requests."""
    complete = df.dropna(subset=predictors)
    n = min(sample_size, len(complete))
    sample = complete.sample(n=n, random_state=random_state)
    logger.info(f"Sampled {n} training rows as prediction requests (random_state={random_state})")
    return sample[predictors].reset_index(drop=True)


def export_predictions(
    predictions: pd.DataFrame,
    output_path: str,
    model_name: str = 'model',
    include_timestamp: bool = True
) -> str:
    """
    Export predictions to CSV file.

    Args:
        predictions: Output of predict_with_intervals
        output_path: Directory to save the file
        model_name: Model label used in the filename
        include_timestamp: Whether to add timestamp to filename

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.mkdir(parents=True, exist_ok=True)

    if include_timestamp:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"predictions_{model_name}_{timestamp}.csv"
    else:
        filename = f"predictions_{model_name}.csv"

    filepath = output_path / filename
    predictions.to_csv(filepath, index_label='row')

    logger.info(f"Predictions exported to {filepath}")
    return str(filepath)


def generate_prediction_report(
    model: QualityRegressionModel,
    summary: Dict[str, float],
    output_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build a JSON-serializable report of the model and its interval summary.

    Args:
        model: Model used for prediction
        summary: Output of summarize_intervals
        output_path: Path to save the report (optional)

    Returns:
        Report dictionary
    """
    report = {
        'generated_at': datetime.now().isoformat(),
        'model': {
            'name': model.name,
            'target': model.target,
            'predictors': model.predictors,
            'intercept': model.intercept_,
            'coefficients': dict(zip(model.predictors, model.coef_.tolist())),
            'r_squared': model.r_squared,
            'residual_std_error': model.residual_std_error,
            'n_samples': model.n_samples,
        },
        'intervals': summary,
    }

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            json.dump(report, f, indent=2)
        logger.info(f"Prediction report saved to {output_path}")

    return report


def run_final_prediction(
    model: QualityRegressionModel,
    new_rows: pd.DataFrame,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    max_extrapolation: Optional[float] = None,
    output_dir: str = "data/predictions/"
) -> Dict[str, Any]:
    """
    Score the requests, summarize the intervals and export the results.

    Args:
        model: Fitted model
        new_rows: Prediction requests
        confidence_level: Interval coverage
        max_extrapolation: Range guard tolerance (None disables it)
        output_dir: Directory for output files

    Returns:
        Dictionary containing predictions, summary, and file paths
    """
    logger.info("=" * 60)
    logger.info("STARTING PREDICTION")
    logger.info("=" * 60)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    predictions = predict_with_intervals(
        model, new_rows,
        confidence_level=confidence_level,
        max_extrapolation=max_extrapolation
    )
    summary = summarize_intervals(predictions, confidence_level)

    csv_path = export_predictions(predictions, str(output_dir), model.name)
    report_path = output_dir / f"prediction_report_{model.name}.json"
    report = generate_prediction_report(model, summary, output_path=str(report_path))

    result = {
        'predictions': predictions,
        'summary': summary,
        'model_name': model.name,
        'csv_path': csv_path,
        'report_path': str(report_path),
        'report': report
    }

    logger.info("=" * 60)
    logger.info("PREDICTION COMPLETE")
    logger.info(f"  Mean lower - fit: {summary['mean_lower_offset']:.4f}")
    logger.info(f"  Mean upper - fit: {summary['mean_upper_offset']:.4f}")
    logger.info(f"  Output: {csv_path}")
    logger.info("=" * 60)

    return result


def print_prediction_results(result: Dict[str, Any], max_rows: int = 10) -> None:
    """
    Print formatted prediction results to console.

    Args:
        result: Result dictionary from run_final_prediction
        max_rows: Number of individual predictions to show
    """
    summary = result['summary']
    predictions = result['predictions']
    level = summary['confidence_level']

    print("\n" + "=" * 70)
    print(f"PREDICTION RESULTS - {result['model_name']}")
    print("=" * 70)

    print(f"\n{'Row':<8} {'Fit':<15} {f'{level:.0%} Lower':<15} {f'{level:.0%} Upper':<15}")
    print("-" * 70)
    for row, values in predictions.head(max_rows).iterrows():
        print(f"{row:<8} {values['fit']:<15.4f} {values['lower']:<15.4f} {values['upper']:<15.4f}")
    if len(predictions) > max_rows:
        print(f"... {len(predictions) - max_rows} more rows")

    print("-" * 70)
    print(f"\nRows scored: {summary['n_predictions']}")
    print(f"Mean (lower - fit): {summary['mean_lower_offset']:.4f}")
    print(f"Mean (upper - fit): {summary['mean_upper_offset']:.4f}")
    print(f"Mean interval width: {summary['mean_width']:.4f}")
    print(f"\nPredictions exported to: {result['csv_path']}")
    print(f"Full report saved to: {result['report_path']}")
    print("=" * 70 + "\n")
