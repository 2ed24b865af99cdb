#!/usr/bin/env python3
"""
Wine Quality Analysis - Main Pipeline
=====================================

Runs the exploratory analysis and linear modelling of wine quality.

Phases:
    1. Load - Read, tag and combine the red and white tables
    2. Features - Derive quality buckets and categories
    3. EDA - Statistics, correlations and figures
    4. Regression - Nested OLS models of quality
    5. Prediction - Prediction intervals for new rows

Usage:
    # Run complete pipeline with the configured data paths
    python main.py

    # Explicit inputs
    python main.py --red data/raw/wineQualityReds.csv --white data/raw/wineQualityWhites.csv

    # Run specific phase
    python main.py --phase regression

    # Score a file of new rows
    python main.py --predict data/raw/new_wines.csv
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List, Optional

import matplotlib.pyplot as plt
import pandas as pd
import yaml

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from wine_eda.data_loader import (
    load_config, load_wine_data, load_prediction_requests, validate_data, print_data_summary
)
from wine_eda.preprocessing import derive_quality_features, print_preprocessing_summary
from wine_eda.eda import generate_eda_report, print_correlation_insights
from wine_eda.model import train_models, print_model_summary, QualityRegressionModel
from wine_eda.evaluation import evaluate_models, print_evaluation_report, plot_prediction_intervals
from wine_eda.prediction import (
    run_final_prediction, print_prediction_results, sample_prediction_requests
)
from wine_eda.exceptions import WineAnalysisError

logger = logging.getLogger(__name__)

PHASES = ['eda', 'regression', 'predict', 'all']


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """Configure logging for the pipeline."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_file = Path(log_dir) / f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def load_and_prepare(red_path: str, white_path: str) -> pd.DataFrame:
    """
    Execute the load and feature phases.

    Args:
        red_path: Path to the red wine file
        white_path: Path to the white wine file

    Returns:
        Combined table with derived quality columns
    """
    print("\n📊 Loading data...")
    df = load_wine_data(red_path, white_path)
    print_data_summary(df)

    is_valid, _ = validate_data(df, strict=False)
    if not is_valid:
        print("⚠️  Data validation warnings detected. Proceeding anyway...")

    df = derive_quality_features(df)
    print_preprocessing_summary(df)
    return df


def run_eda(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute the exploratory data analysis phase.

    Args:
        df: Table with derived quality columns
        config: Configuration dictionary

    Returns:
        EDA report dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE: EXPLORATORY DATA ANALYSIS")
    print("=" * 70)

    output_dir = (config.get('output') or {}).get('figures_path', 'reports/figures/')
    summary_config = config.get('summary') or {}

    report = generate_eda_report(
        df,
        output_dir=output_dir,
        quantiles=summary_config.get('quantiles', [0.0, 0.99, 0.999]),
        high_threshold=summary_config.get('high_threshold', 0.5),
        medium_threshold=summary_config.get('medium_threshold', 0.3),
        show_plots=False
    )

    for name, table in report["correlations"].items():
        print_correlation_insights(table, title=name)

    print(f"\n✓ EDA complete. {len(report['figures'])} figures saved to {output_dir}")

    return report


def run_regression(
    df: pd.DataFrame,
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute the regression phase: fit the nested models and evaluate them.

    Args:
        df: Table with derived quality columns
        config: Configuration dictionary

    Returns:
        Dictionary with the fitted models and evaluation results
    """
    print("\n" + "=" * 70)
    print("PHASE: REGRESSION")
    print("=" * 70)

    output_config = config.get('output') or {}
    model_path = output_config.get('model_path', 'models/quality_regression.joblib')

    models = train_models(df, config, save_path=model_path)
    print_model_summary(models)

    evaluation = evaluate_models(
        models, df,
        figures_dir=output_config.get('figures_path', 'reports/figures/'),
        metrics_dir=output_config.get('metrics_path', 'reports/metrics/'),
        show_plots=False
    )
    print_evaluation_report(evaluation['metrics'])

    return {'models': models, 'evaluation': evaluation}


def run_prediction(
    df: pd.DataFrame,
    model: QualityRegressionModel,
    config: Dict[str, Any],
    predict_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute the prediction phase.

    Scores the rows in `predict_path`, or a sample of the training rows when
    no request file is given.

    Args:
        df: Training table
        model: Fitted model used for scoring
        config: Configuration dictionary
        predict_path: Optional file of prediction requests

    Returns:
        Prediction result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE: PREDICTION")
    print("=" * 70)

    prediction_config = config.get('prediction') or {}
    output_config = config.get('output') or {}

    if predict_path:
        new_rows = load_prediction_requests(predict_path, model.predictors)
    else:
        new_rows = sample_prediction_requests(
            df,
            model.predictors,
            sample_size=prediction_config.get('sample_size', 100),
            random_state=prediction_config.get('random_state', 42)
        )

    result = run_final_prediction(
        model,
        new_rows,
        confidence_level=prediction_config.get('confidence_level', 0.95),
        max_extrapolation=prediction_config.get('max_extrapolation'),
        output_dir=output_config.get('predictions_path', 'data/predictions/')
    )

    figures_dir = Path(output_config.get('figures_path', 'reports/figures/'))
    figures_dir.mkdir(parents=True, exist_ok=True)
    fig = plot_prediction_intervals(
        result['predictions'],
        save_path=str(figures_dir / "prediction_intervals.png")
    )
    plt.close(fig)

    print_prediction_results(result)

    return result


def run_pipeline(
    red_path: str,
    white_path: str,
    config: Dict[str, Any],
    phase: str = 'all',
    predict_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute the requested phase, or all of them.

    Prediction needs a fitted model, so the 'predict' phase also runs the
    regression.

    Args:
        red_path: Path to the red wine file
        white_path: Path to the white wine file
        config: Configuration dictionary
        phase: One of 'eda', 'regression', 'predict', 'all'
        predict_path: Optional file of prediction requests

    Returns:
        Dictionary containing all phase results
    """
    if phase not in PHASES:
        raise ValueError(f"Unknown phase: {phase}. Choose from: {', '.join(PHASES)}")

    print("\n" + "=" * 70)
    print("WINE QUALITY ANALYSIS PIPELINE")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    df = load_and_prepare(red_path, white_path)
    results = {
        'config': config,
        'data_shape': df.shape,
        'data': df
    }

    if phase in ('eda', 'all'):
        results['eda'] = run_eda(df, config)

    if phase in ('regression', 'predict', 'all'):
        results['regression'] = run_regression(df, config)

    if phase in ('predict', 'all'):
        model = results['regression']['models'][-1]
        results['prediction'] = run_prediction(df, model, config, predict_path)

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Input data: {df.shape[0]} rows × {df.shape[1]} columns")
    if 'regression' in results:
        for model in results['regression']['models']:
            print(f"  • {model.name} R²: {model.r_squared:.4f}")
    if 'prediction' in results:
        summary = results['prediction']['summary']
        print(f"  • Mean interval: [{summary['mean_lower_offset']:+.4f}, "
              f"{summary['mean_upper_offset']:+.4f}]")
        print(f"  • Output: {results['prediction']['csv_path']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Exploratory analysis and regression of wine quality",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --phase eda
  python main.py --red reds.csv --white whites.csv --predict new_wines.csv
        """
    )

    parser.add_argument(
        '--red', '-r',
        type=str,
        default=None,
        help='Path to the red wine CSV file (default: from config)'
    )

    parser.add_argument(
        '--white', '-w',
        type=str,
        default=None,
        help='Path to the white wine CSV file (default: from config)'
    )

    parser.add_argument(
        '--predict',
        type=str,
        default=None,
        help='Path to a CSV of predictor values to score (default: sample of training rows)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=PHASES,
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    # Check if config exists
    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return 1

    try:
        config = load_config(args.config)
    except yaml.YAMLError as e:
        print(f"\n❌ Could not parse config file {args.config}: {e}")
        return 1
    if not isinstance(config, dict):
        print(f"\n❌ Config file {args.config} must contain a mapping of sections")
        return 1

    level = 'DEBUG' if args.verbose else (config.get('logging') or {}).get('level', 'INFO')
    setup_logging(level, log_dir=(config.get('logging') or {}).get('log_dir'))

    data_config = config.get('data') or {}
    red_path = args.red or data_config.get('red_path', 'data/raw/wineQualityReds.csv')
    white_path = args.white or data_config.get('white_path', 'data/raw/wineQualityWhites.csv')
    predict_path = args.predict or data_config.get('predict_path')

    try:
        run_pipeline(red_path, white_path, config, phase=args.phase, predict_path=predict_path)
        return 0

    except WineAnalysisError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"\n❌ Pipeline failed ({type(e).__name__}): {e}")
        return 1

    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
