"""
Model Evaluation Module
=======================

Diagnostics for the fitted quality models.

Features:
    - R², RMSE, MAE per model on the training table
    - Actual vs fitted plots
    - Residual analysis
    - R² progression across nested models
    - Prediction interval plot for scored requests
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import mean_squared_error, mean_absolute_error, r2_score

from .model import QualityRegressionModel

logger = logging.getLogger(__name__)


def _complete_rows(model: QualityRegressionModel, df: pd.DataFrame) -> pd.DataFrame:
    return df.dropna(subset=model.predictors + [model.target])


def calculate_metrics(model: QualityRegressionModel, df: pd.DataFrame) -> Dict[str, float]:
    """
    Fit statistics of one model on a table.

    Args:
        model: Fitted model
        df: Table with the model's predictors and target

    Returns:
        Dictionary with r2, rmse, mae and sample count
    """
    data = _complete_rows(model, df)
    y_true = data[model.target].to_numpy(dtype=float)
    y_pred = model.predict(data)

    return {
        'r2': float(r2_score(y_true, y_pred)),
        'adj_r2': float(model.adj_r_squared),
        'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'mae': float(mean_absolute_error(y_true, y_pred)),
        'n_samples': int(len(data)),
        'n_predictors': model.n_predictors,
    }


def plot_actual_vs_predicted(
    models: Sequence[QualityRegressionModel],
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (15, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Box plots of fitted values against the observed quality, one panel per model.

    Args:
        models: Fitted models
        df: Training table
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, axes = plt.subplots(1, len(models), figsize=figsize, sharey=True)
    axes = np.atleast_1d(axes)

    for ax, model in zip(axes, models):
        data = _complete_rows(model, df)
        plot_df = pd.DataFrame({
            'quality': data[model.target].to_numpy(),
            'fitted': model.predict(data),
        })
        sns.boxplot(data=plot_df, x='quality', y='fitted', color='steelblue', fliersize=1, ax=ax)

        ax.set_xlabel('Observed quality')
        ax.set_ylabel('Fitted quality')
        ax.set_title(f'{model.name}: R²={model.r_squared:.4f}', fontsize=10, fontweight='bold')

    plt.suptitle('Observed vs Fitted Quality', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Actual vs Predicted plot saved to {save_path}")

    return fig


def plot_residuals(
    models: Sequence[QualityRegressionModel],
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (15, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create residual distribution plots for model diagnostics.

    Args:
        models: Fitted models
        df: Training table
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, axes = plt.subplots(1, len(models), figsize=figsize, sharey=True)
    axes = np.atleast_1d(axes)

    for ax, model in zip(axes, models):
        data = _complete_rows(model, df)
        residuals = data[model.target].to_numpy(dtype=float) - model.predict(data)

        sns.histplot(residuals, kde=True, ax=ax, bins=50, alpha=0.7)
        ax.axvline(0, color='red', linestyle='--', linewidth=2, label='Zero')

        ax.set_xlabel('Residual (Observed - Fitted)')
        ax.set_ylabel('Frequency')
        ax.set_title(f'{model.name} (Std: {np.std(residuals):.4f})', fontsize=10, fontweight='bold')
        ax.legend(fontsize=8)

    plt.suptitle('Residual Analysis - Error Distribution', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Residuals plot saved to {save_path}")

    return fig


def plot_r2_progression(
    metrics: Dict[str, Dict[str, float]],
    figsize: Tuple[int, int] = (8, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Bar chart of R² and adjusted R² as predictors are added."""
    names = list(metrics.keys())
    r2_values = [metrics[name]['r2'] for name in names]
    adj_values = [metrics[name]['adj_r2'] for name in names]

    fig, ax = plt.subplots(figsize=figsize)

    x = np.arange(len(names))
    width = 0.35
    ax.bar(x - width / 2, r2_values, width, color='steelblue', alpha=0.8, label='R²')
    ax.bar(x + width / 2, adj_values, width, color='coral', alpha=0.8, label='adj. R²')

    for i, value in enumerate(r2_values):
        ax.text(i - width / 2, value, f'{value:.3f}', ha='center', va='bottom', fontsize=8)

    ax.set_xticks(x)
    ax.set_xticklabels(names)
    ax.set_xlabel('Model')
    ax.set_ylabel('Fraction of variance explained')
    ax.set_title('R² by Model', fontsize=14, fontweight='bold')
    ax.legend()
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"R² progression plot saved to {save_path}")

    return fig


def plot_prediction_intervals(
    predictions: pd.DataFrame,
    max_rows: int = 50,
    figsize: Tuple[int, int] = (12, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Point estimates with their prediction intervals, sorted by fit.

    Args:
        predictions: Output of predict_with_intervals
        max_rows: Number of rows to draw
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    shown = predictions.head(max_rows).sort_values('fit').reset_index(drop=True)
    x = np.arange(len(shown))

    fig, ax = plt.subplots(figsize=figsize)
    ax.fill_between(x, shown['lower'], shown['upper'], alpha=0.25, color='steelblue',
                    label='Prediction interval')
    ax.plot(x, shown['fit'], 'o-', color='steelblue', markersize=3, label='Fit')

    ax.set_xlabel('Request (sorted by fit)')
    ax.set_ylabel('Quality')
    ax.set_title('Prediction Intervals', fontsize=14, fontweight='bold')
    ax.legend(loc='upper left')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Prediction interval plot saved to {save_path}")

    return fig


def evaluate_models(
    models: Sequence[QualityRegressionModel],
    df: pd.DataFrame,
    output_dir: str = "reports/",
    show_plots: bool = False,
    figures_dir: Optional[str] = None,
    metrics_dir: Optional[str] = None
) -> Dict[str, Any]:
    """
    Run model diagnostics and generate all figures.

    Args:
        models: Fitted models
        df: Training table
        output_dir: Base directory, used for figures/ and metrics/ when
            those are not given explicitly
        show_plots: Whether to display plots interactively
        figures_dir: Directory for figures (default: output_dir/figures)
        metrics_dir: Directory for the metrics JSON (default: output_dir/metrics)

    Returns:
        Dictionary containing metrics and file paths
    """
    output_dir = Path(output_dir)
    figures_dir = Path(figures_dir) if figures_dir else output_dir / "figures"
    metrics_dir = Path(metrics_dir) if metrics_dir else output_dir / "metrics"

    figures_dir.mkdir(parents=True, exist_ok=True)
    metrics_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("STARTING MODEL EVALUATION")
    logger.info("=" * 60)

    metrics = {model.name: calculate_metrics(model, df) for model in models}

    metrics_file = metrics_dir / "regression_metrics.json"
    with open(metrics_file, 'w') as f:
        json.dump(metrics, f, indent=2)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []

    logger.info("Generating Actual vs Predicted plots...")
    plot_actual_vs_predicted(models, df, save_path=str(figures_dir / "eval_actual_vs_predicted.png"))
    figures.append("eval_actual_vs_predicted.png")

    logger.info("Generating residual analysis...")
    plot_residuals(models, df, save_path=str(figures_dir / "eval_residuals.png"))
    figures.append("eval_residuals.png")

    logger.info("Generating R² progression...")
    plot_r2_progression(metrics, save_path=str(figures_dir / "eval_r2_progression.png"))
    figures.append("eval_r2_progression.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    result = {
        'metrics': metrics,
        'figures': figures,
        'metrics_file': str(metrics_file)
    }

    logger.info("=" * 60)
    logger.info("EVALUATION COMPLETE")
    logger.info("=" * 60)

    return result


def print_evaluation_report(metrics: Dict[str, Dict[str, float]]) -> None:
    """
    Print a formatted evaluation report to console.

    Args:
        metrics: Metrics per model name
    """
    print("\n" + "=" * 70)
    print("MODEL EVALUATION REPORT")
    print("=" * 70)
    print(f"{'Model':<10} {'Predictors':<12} {'R²':<12} {'adj. R²':<12} {'RMSE':<12} {'MAE':<12}")
    print("-" * 70)

    for name, m in metrics.items():
        print(f"{name:<10} {m['n_predictors']:<12} {m['r2']:<12.4f} {m['adj_r2']:<12.4f} "
              f"{m['rmse']:<12.4f} {m['mae']:<12.4f}")

    best = max(metrics, key=lambda name: metrics[name]['r2'])
    print("-" * 70)
    print(f"\nHighest R²: {best} ({metrics[best]['r2']:.4f})")
    print("=" * 70 + "\n")
