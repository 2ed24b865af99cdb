"""
Exploratory Data Analysis (EDA) Module
======================================

Descriptive statistics, correlations and figures for the combined wine table.

Functions:
    - describe_column: Min, max, mean, median and quantiles for one column
    - summarize_columns: Column statistics, optionally for one color
    - correlate_pair: Pearson correlation between two columns
    - correlation_table: Pairwise correlations with High/Medium/Low strength
    - plot_distributions: Histograms by color, trimmed at a high quantile
    - plot_quality_counts: Quality score counts by color
    - plot_correlation_matrix: Correlation heatmap
    - plot_boxplots_by_quality: Each variable against the ordered quality
    - plot_alcohol_density: Multivariate scatter coloured by quality category
    - generate_eda_report: Full EDA report with all visualizations
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

from .data_loader import ID_COLUMN, COLOR_COLUMN, COLORS
from .exceptions import UndefinedCorrelationError

logger = logging.getLogger(__name__)

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")

DEFAULT_QUANTILES = (0.0, 0.99, 0.999)
HIGH_THRESHOLD = 0.5
MEDIUM_THRESHOLD = 0.3
UNDEFINED = 'Undefined'

COLOR_PALETTE = {'red': '#8b1a1a', 'white': '#d4b106'}
CATEGORY_PALETTE = {'low': '#d73027', 'medium': '#fee08b', 'high': '#1a9850'}


@dataclass(frozen=True)
class CorrelationResult:
    """Pearson coefficient for a column pair and its strength class."""

    coefficient: Optional[float]
    strength: str

    @property
    def is_defined(self) -> bool:
        return self.coefficient is not None


def numeric_columns(df: pd.DataFrame) -> List[str]:
    """Numeric columns of the table, excluding the row identifier."""
    return [c for c in df.select_dtypes(include=[np.number]).columns if c != ID_COLUMN]


def filter_category(df: pd.DataFrame, category: Optional[str] = None) -> pd.DataFrame:
    """Restrict the table to one color, or return it unchanged."""
    if category is None:
        return df
    if category not in COLORS:
        raise ValueError(f"Unknown category '{category}'. Choose from: {COLORS}")
    return df[df[COLOR_COLUMN] == category]


def describe_column(
    series: pd.Series,
    quantiles: Sequence[float] = DEFAULT_QUANTILES
) -> Dict[str, Any]:
    """
    Compute distribution statistics for one numeric column.

    The 99th and 99.9th percentiles bound the trimmed axis ranges used by
    the distribution plots.

    Args:
        series: Numeric column
        quantiles: Quantile levels in [0, 1]

    Returns:
        Dictionary with min, max, mean, median and a quantiles mapping
    """
    values = series.dropna()
    return {
        "count": int(values.count()),
        "min": float(values.min()),
        "max": float(values.max()),
        "mean": float(values.mean()),
        "median": float(values.median()),
        "quantiles": {float(q): float(values.quantile(q)) for q in quantiles},
    }


def summarize_columns(
    df: pd.DataFrame,
    quantiles: Sequence[float] = DEFAULT_QUANTILES,
    category: Optional[str] = None
) -> Dict[str, Dict[str, Any]]:
    """
    Compute statistics for every numeric column.

    Args:
        df: Combined wine table
        quantiles: Quantile levels to report
        category: Restrict to one color ('red' or 'white')

    Returns:
        Mapping from column name to its statistics
    """
    subset = filter_category(df, category)
    return {col: describe_column(subset[col], quantiles) for col in numeric_columns(subset)}


def summarize_by_category(
    df: pd.DataFrame,
    quantiles: Sequence[float] = DEFAULT_QUANTILES
) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Column statistics computed separately for each color."""
    return {color: summarize_columns(df, quantiles, category=color) for color in COLORS}


def correlate_pair(x: pd.Series, y: pd.Series) -> float:
    """
    Pearson correlation between two columns over their complete pairs.

    Args:
        x: First column
        y: Second column

    Returns:
        Pearson correlation coefficient

    Raises:
        UndefinedCorrelationError: If either column has zero variance or
            there are fewer than two complete pairs
    """
    pairs = pd.concat([x, y], axis=1, keys=['x', 'y']).dropna()
    if len(pairs) < 2:
        raise UndefinedCorrelationError(
            f"Correlation of '{x.name}' and '{y.name}' needs at least 2 complete pairs, "
            f"got {len(pairs)}"
        )

    for name, col in ((x.name, pairs['x']), (y.name, pairs['y'])):
        if col.nunique() < 2:
            raise UndefinedCorrelationError(
                f"Correlation with '{name}' is undefined: column has zero variance"
            )

    r, _ = stats.pearsonr(pairs['x'].to_numpy(dtype=float), pairs['y'].to_numpy(dtype=float))
    return float(np.clip(r, -1.0, 1.0))


def classify_strength(
    r: float,
    high_threshold: float = HIGH_THRESHOLD,
    medium_threshold: float = MEDIUM_THRESHOLD
) -> str:
    """Classify |r| as High, Medium or Low."""
    magnitude = abs(r)
    if magnitude >= high_threshold:
        return 'High'
    if magnitude >= medium_threshold:
        return 'Medium'
    return 'Low'


def correlation_table(
    df: pd.DataFrame,
    category: Optional[str] = None,
    columns: Optional[List[str]] = None,
    high_threshold: float = HIGH_THRESHOLD,
    medium_threshold: float = MEDIUM_THRESHOLD
) -> Dict[Tuple[str, str], CorrelationResult]:
    """
    Compute correlations for every ordered pair of numeric columns.

    Each unordered pair is computed once and stored under both orderings,
    so the table is symmetric. Pairs involving a zero-variance column are
    reported as Undefined with no coefficient.

    Args:
        df: Combined wine table
        category: Restrict to one color ('red' or 'white')
        columns: Columns to correlate (default: all numeric except id)
        high_threshold: Minimum |r| classified as High
        medium_threshold: Minimum |r| classified as Medium

    Returns:
        Mapping from (column_a, column_b) to CorrelationResult
    """
    subset = filter_category(df, category)
    if columns is None:
        columns = numeric_columns(subset)

    table: Dict[Tuple[str, str], CorrelationResult] = {}
    for i, col_a in enumerate(columns):
        for col_b in columns[i:]:
            try:
                r = correlate_pair(subset[col_a], subset[col_b])
                result = CorrelationResult(
                    r, classify_strength(r, high_threshold, medium_threshold)
                )
            except UndefinedCorrelationError as e:
                logger.warning(str(e))
                result = CorrelationResult(None, UNDEFINED)
            table[(col_a, col_b)] = result
            table[(col_b, col_a)] = result

    return table


def correlation_matrix(table: Dict[Tuple[str, str], CorrelationResult]) -> pd.DataFrame:
    """
    Arrange a correlation table as a square DataFrame.

    Undefined pairs become NaN.
    """
    columns = list(dict.fromkeys(a for a, _ in table))
    matrix = pd.DataFrame(np.nan, index=columns, columns=columns)
    for (a, b), result in table.items():
        if result.is_defined:
            matrix.loc[a, b] = result.coefficient
    return matrix


def plot_distributions(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    upper_quantile: float = 0.99,
    figsize: Tuple[int, int] = (14, 18),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create histograms for each column, split by color.

    The x-axis is limited to the 0th to `upper_quantile` range so a handful
    of extreme samples do not flatten the distribution.

    Args:
        df: Combined wine table
        columns: Columns to plot (default: all numeric except id)
        upper_quantile: Upper quantile used to trim the x-axis
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Matplotlib Figure object
    """
    if columns is None:
        columns = numeric_columns(df)

    n_cols = len(columns)
    n_rows = (n_cols + 1) // 2

    fig, axes = plt.subplots(n_rows, 2, figsize=figsize)
    axes = np.atleast_1d(axes).flatten()

    for idx, col in enumerate(columns):
        ax = axes[idx]
        col_stats = describe_column(df[col], quantiles=(0.0, upper_quantile))
        lower, upper = col_stats["quantiles"][0.0], col_stats["quantiles"][upper_quantile]
        trimmed = df[(df[col] >= lower) & (df[col] <= upper)]

        sns.histplot(
            data=trimmed, x=col, hue=COLOR_COLUMN, palette=COLOR_PALETTE,
            bins=40, element='step', stat='density', common_norm=False, ax=ax
        )
        ax.axvline(col_stats["median"], color='black', linestyle='--', linewidth=1,
                   label=f'Median: {col_stats["median"]:.3f}')
        ax.set_xlim(lower, upper)
        ax.set_title(f'{col} (≤ {upper_quantile:.0%} quantile)', fontsize=10, fontweight='bold')

    # Hide unused subplots
    for idx in range(n_cols, len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Distribution Analysis by Color', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Distribution plots saved to {save_path}")

    return fig


def plot_quality_counts(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (10, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Bar chart of sample counts per quality score, split by color."""
    fig, ax = plt.subplots(figsize=figsize)

    sns.countplot(data=df, x='quality', hue=COLOR_COLUMN, palette=COLOR_PALETTE, ax=ax)
    ax.set_xlabel('Quality score')
    ax.set_ylabel('Samples')
    ax.set_title('Quality Score Counts', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Quality counts plot saved to {save_path}")

    return fig


def plot_correlation_matrix(
    matrix: pd.DataFrame,
    title: str = 'Correlation Matrix (Pearson)',
    figsize: Tuple[int, int] = (11, 9),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create a correlation heatmap from a square correlation DataFrame.

    Args:
        matrix: Output of correlation_matrix
        title: Figure title
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    mask = np.triu(np.ones_like(matrix, dtype=bool), k=1)
    sns.heatmap(
        matrix,
        mask=mask,
        annot=True,
        fmt='.2f',
        cmap='RdYlBu_r',
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(title, fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Correlation matrix saved to {save_path}")

    return fig


def plot_boxplots_by_quality(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    upper_quantile: float = 0.99,
    figsize: Tuple[int, int] = (14, 18),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Box plots of each variable against the ordered quality score, by color.

    Args:
        df: Table with quality_ordered derived
        columns: Variables to plot (default: all numeric except id and quality)
        upper_quantile: Upper quantile used to trim the y-axis
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if columns is None:
        columns = [c for c in numeric_columns(df) if c != 'quality']

    n_cols = len(columns)
    n_rows = (n_cols + 1) // 2

    fig, axes = plt.subplots(n_rows, 2, figsize=figsize)
    axes = np.atleast_1d(axes).flatten()

    for idx, col in enumerate(columns):
        ax = axes[idx]
        sns.boxplot(
            data=df, x='quality_ordered', y=col, hue=COLOR_COLUMN,
            palette=COLOR_PALETTE, fliersize=1, ax=ax
        )
        ax.set_ylim(df[col].min(), df[col].quantile(upper_quantile))
        ax.set_xlabel('Quality')
        ax.set_title(col, fontsize=10, fontweight='bold')

    for idx in range(n_cols, len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Variables by Quality Score', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Box plots saved to {save_path}")

    return fig


def plot_alcohol_density(
    df: pd.DataFrame,
    upper_quantile: float = 0.999,
    figsize: Tuple[int, int] = (14, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Scatter alcohol against density, coloured by quality category and
    faceted by wine color.
    """
    fig, axes = plt.subplots(1, len(COLORS), figsize=figsize, sharey=True)

    density_max = df['density'].quantile(upper_quantile)
    for ax, color in zip(axes, COLORS):
        subset = df[(df[COLOR_COLUMN] == color) & (df['density'] <= density_max)]
        sns.scatterplot(
            data=subset, x='alcohol', y='density', hue='quality_category',
            palette=CATEGORY_PALETTE, alpha=0.6, s=12, ax=ax
        )
        ax.set_title(f'{color} (n={len(subset)})', fontsize=11, fontweight='bold')

    plt.suptitle('Alcohol vs Density by Quality Category', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Alcohol/density scatter saved to {save_path}")

    return fig


def generate_eda_report(
    df: pd.DataFrame,
    output_dir: str = "reports/figures/",
    quantiles: Sequence[float] = DEFAULT_QUANTILES,
    high_threshold: float = HIGH_THRESHOLD,
    medium_threshold: float = MEDIUM_THRESHOLD,
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate a complete EDA report with all visualizations.

    Args:
        df: Table with derived quality columns
        output_dir: Directory to save figures
        quantiles: Quantile levels for column statistics
        high_threshold: Minimum |r| classified as High
        medium_threshold: Minimum |r| classified as Medium
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing statistics, correlations and figure names
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = {
        "data_shape": df.shape,
        "columns": list(df.columns),
        "figures": [],
        "statistics": {},
        "statistics_by_color": {},
        "correlations": {},
    }

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS")
    logger.info("=" * 60)

    logger.info("Computing column statistics...")
    report["statistics"] = summarize_columns(df, quantiles)
    report["statistics_by_color"] = summarize_by_category(df, quantiles)

    logger.info("Plotting distributions...")
    plot_distributions(df, save_path=str(output_dir / "01_distributions.png"))
    report["figures"].append("01_distributions.png")

    logger.info("Plotting quality counts...")
    plot_quality_counts(df, save_path=str(output_dir / "02_quality_counts.png"))
    report["figures"].append("02_quality_counts.png")

    logger.info("Computing correlation tables...")
    for name, category in (('all', None), ('red', 'red'), ('white', 'white')):
        table = correlation_table(
            df, category=category,
            high_threshold=high_threshold, medium_threshold=medium_threshold
        )
        report["correlations"][name] = table

        figure_name = f"03_correlation_{name}.png"
        plot_correlation_matrix(
            correlation_matrix(table),
            title=f'Correlation Matrix ({name})',
            save_path=str(output_dir / figure_name)
        )
        report["figures"].append(figure_name)

    if 'quality_ordered' in df.columns:
        logger.info("Creating box plots by quality...")
        plot_boxplots_by_quality(df, save_path=str(output_dir / "04_boxplots_by_quality.png"))
        report["figures"].append("04_boxplots_by_quality.png")

    if 'quality_category' in df.columns:
        logger.info("Creating alcohol/density scatter...")
        plot_alcohol_density(df, save_path=str(output_dir / "05_alcohol_density.png"))
        report["figures"].append("05_alcohol_density.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EDA COMPLETE - All figures saved to: %s", output_dir)
    logger.info("=" * 60)

    return report


def print_correlation_insights(
    table: Dict[Tuple[str, str], CorrelationResult],
    title: str = 'all samples'
) -> None:
    """
    Print the High and Medium correlations, strongest first.

    Args:
        table: Output of correlation_table
        title: Label for the partition the table was computed on
    """
    print("\n" + "=" * 50)
    print(f"CORRELATION INSIGHTS ({title})")
    print("=" * 50)

    seen = set()
    notable = []
    undefined = []
    for (a, b), result in table.items():
        key = frozenset((a, b))
        if a == b or key in seen:
            continue
        seen.add(key)
        if not result.is_defined:
            undefined.append((a, b))
        elif result.strength in ('High', 'Medium'):
            notable.append((a, b, result))

    if notable:
        for a, b, result in sorted(notable, key=lambda x: abs(x[2].coefficient), reverse=True):
            direction = "positive" if result.coefficient > 0 else "negative"
            print(f"  • {a} ↔ {b}: {result.coefficient:.3f} ({result.strength}, {direction})")
    else:
        print("\nNo High or Medium correlations found")

    if undefined:
        print("\nUndefined (zero variance):")
        for a, b in undefined:
            print(f"  • {a} ↔ {b}")

    print("=" * 50 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    rng = np.random.default_rng(42)
    n_samples = 200
    alcohol = rng.normal(10.5, 1.2, n_samples)
    sample_df = pd.DataFrame({
        'id': np.arange(n_samples),
        'alcohol': alcohol,
        'density': 1.0 - 0.001 * alcohol + rng.normal(0, 0.0005, n_samples),
        'quality': np.clip(np.round(alcohol / 2 + rng.normal(0, 0.7, n_samples)), 3, 9).astype(int),
        'color': rng.choice(COLORS, n_samples),
    })

    table = correlation_table(sample_df)
    print_correlation_insights(table)
    print(correlation_matrix(table).round(3))
