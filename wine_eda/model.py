"""
Model Training Module
=====================

Ordinary least squares models of wine quality.

Features:
    - Closed-form OLS fit with scikit-learn's LinearRegression
    - Collinearity and sample-size checks before fitting
    - Coefficient tables with standard errors, t values and p-values
    - Nested models built by adding one predictor at a time
    - Model persistence (save/load)
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence
from datetime import datetime

import numpy as np
import pandas as pd
import joblib
from scipy import stats
from sklearn.linear_model import LinearRegression
from sklearn.metrics import r2_score

from .exceptions import InsufficientDataError, SingularMatrixError

logger = logging.getLogger(__name__)

DEFAULT_PREDICTORS = ['alcohol', 'density', 'fixed_acidity']
INTERCEPT = '(Intercept)'


class QualityRegressionModel:
    """
    Linear model of quality against an ordered list of predictors.

    Besides the coefficients, the fitted model keeps what the prediction
    intervals need: residual standard error, residual degrees of freedom and
    the inverse Gram matrix of the training design.
    """

    def __init__(
        self,
        predictors: Sequence[str],
        target: str = 'quality',
        name: Optional[str] = None
    ):
        """
        Initialize an unfitted model.

        Args:
            predictors: Predictor column names, in order
            target: Target column name
            name: Label used in comparison tables (default: 'a + b + c')
        """
        if not predictors:
            raise ValueError("At least one predictor is required")

        self.predictors = list(predictors)
        self.target = target
        self.name = name or ' + '.join(self.predictors)

        self.model: Optional[LinearRegression] = None
        self.intercept_: Optional[float] = None
        self.coef_: Optional[np.ndarray] = None
        self.r_squared: Optional[float] = None
        self.adj_r_squared: Optional[float] = None
        self.residual_std_error: Optional[float] = None
        self.n_samples: Optional[int] = None
        self.df_resid: Optional[int] = None
        self.xtx_inv_: Optional[np.ndarray] = None
        self.std_errors_: Optional[np.ndarray] = None
        self.predictor_ranges_: Dict[str, Dict[str, float]] = {}
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    @property
    def n_predictors(self) -> int:
        return len(self.predictors)

    @property
    def params(self) -> np.ndarray:
        """Intercept followed by one coefficient per predictor."""
        self._check_fitted()
        return np.concatenate([[self.intercept_], self.coef_])

    def _check_fitted(self) -> None:
        if not self._is_fitted:
            raise ValueError("Model must be fitted before use. Call fit() first.")

    def _check_columns(self, df: pd.DataFrame, columns: List[str]) -> None:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"Missing columns {missing}. Columns found: {list(df.columns)}")

    @staticmethod
    def design_matrix(X: np.ndarray) -> np.ndarray:
        """Prepend the intercept column of ones."""
        return np.column_stack([np.ones(len(X)), X])

    def fit(self, df: pd.DataFrame) -> 'QualityRegressionModel':
        """
        Fit the model on all rows with complete predictor and target values.

        Args:
            df: Training table

        Returns:
            Self for method chaining

        Raises:
            InsufficientDataError: If complete rows do not outnumber predictors
            SingularMatrixError: If the predictors are perfectly collinear
        """
        if self._is_fitted:
            raise ValueError(f"Model '{self.name}' is already fitted; create a new model to refit")

        columns = self.predictors + [self.target]
        self._check_columns(df, columns)

        data = df[columns].dropna()
        n, p = len(data), self.n_predictors
        dropped = len(df) - n
        if dropped:
            logger.info(f"Dropped {dropped} rows with missing values for {columns}")

        if n <= p:
            raise InsufficientDataError(
                f"Model '{self.name}' needs more than {p} complete rows, got {n}"
            )

        X = data[self.predictors].to_numpy(dtype=float)
        y = data[self.target].to_numpy(dtype=float)
        design = self.design_matrix(X)

        if np.linalg.matrix_rank(design) < design.shape[1]:
            raise SingularMatrixError(
                f"Predictors {self.predictors} are perfectly collinear "
                f"(with each other or the intercept)"
            )
        try:
            xtx_inv = np.linalg.inv(design.T @ design)
        except np.linalg.LinAlgError as e:
            raise SingularMatrixError(
                f"Design matrix for {self.predictors} is not invertible: {e}"
            ) from e

        logger.info(f"Fitting '{self.name}' on {n} rows")

        self.model = LinearRegression()
        self.model.fit(X, y)
        fitted = self.model.predict(X)
        residuals = y - fitted

        self.intercept_ = float(self.model.intercept_)
        self.coef_ = np.asarray(self.model.coef_, dtype=float)
        self.n_samples = n
        self.df_resid = n - p - 1
        self.r_squared = float(r2_score(y, fitted))
        self.xtx_inv_ = xtx_inv

        if self.df_resid > 0:
            sigma2 = float(residuals @ residuals) / self.df_resid
            self.residual_std_error = float(np.sqrt(sigma2))
            self.adj_r_squared = 1 - (1 - self.r_squared) * (n - 1) / self.df_resid
            self.std_errors_ = np.sqrt(np.diag(xtx_inv) * sigma2)
        else:
            # Exact fit: no residual variance to estimate
            self.residual_std_error = float('nan')
            self.adj_r_squared = float('nan')
            self.std_errors_ = np.full(p + 1, np.nan)

        self.predictor_ranges_ = {
            col: {'min': float(data[col].min()), 'max': float(data[col].max())}
            for col in self.predictors
        }
        self.training_info = {
            'n_samples': n,
            'n_predictors': p,
            'rows_dropped': dropped,
            'trained_at': datetime.now().isoformat(),
        }
        self._is_fitted = True

        logger.info(f"  R² = {self.r_squared:.4f}, residual SE = {self.residual_std_error:.4f}")
        return self

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """
        Point estimates for new rows.

        Args:
            df: Table containing the predictor columns

        Returns:
            Array of predicted quality values
        """
        self._check_fitted()
        self._check_columns(df, self.predictors)
        return self.model.predict(df[self.predictors].to_numpy(dtype=float))

    def leverage(self, df: pd.DataFrame) -> np.ndarray:
        """
        x0 (XᵀX)⁻¹ x0ᵀ for each row: how far it sits from the training
        centroid in design-matrix space.
        """
        self._check_fitted()
        self._check_columns(df, self.predictors)
        design = self.design_matrix(df[self.predictors].to_numpy(dtype=float))
        return np.einsum('ij,jk,ik->i', design, self.xtx_inv_, design)

    def coefficient_table(self) -> pd.DataFrame:
        """
        Estimates with standard errors, t values and two-sided p-values.

        Returns:
            DataFrame indexed by term
        """
        self._check_fitted()
        estimates = self.params
        with np.errstate(divide='ignore', invalid='ignore'):
            t_values = estimates / self.std_errors_
        if self.df_resid > 0:
            p_values = 2 * stats.t.sf(np.abs(t_values), self.df_resid)
        else:
            p_values = np.full(len(estimates), np.nan)

        return pd.DataFrame(
            {
                'estimate': estimates,
                'std_error': self.std_errors_,
                't_value': t_values,
                'p_value': p_values,
            },
            index=[INTERCEPT] + self.predictors,
        )

    def save(self, filepath: str) -> None:
        """
        Save the fitted model to disk.

        Args:
            filepath: Path to save the model
        """
        self._check_fitted()
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, filepath)
        logger.info(f"Model saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'QualityRegressionModel':
        """
        Load a fitted model from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded QualityRegressionModel instance
        """
        model = joblib.load(filepath)
        if not isinstance(model, cls):
            raise TypeError(f"{filepath} does not contain a {cls.__name__}")
        logger.info(f"Model loaded from {filepath}")
        return model


def fit_incremental_models(
    df: pd.DataFrame,
    predictors: Sequence[str] = DEFAULT_PREDICTORS,
    target: str = 'quality'
) -> List[QualityRegressionModel]:
    """
    Fit nested models, each adding the next predictor to the previous list.

    Every model is fitted from scratch; model k uses predictors[:k].

    Args:
        df: Training table
        predictors: Predictor sequence
        target: Target column

    Returns:
        List of fitted models, named m1, m2, ...
    """
    logger.info("=" * 60)
    logger.info("STARTING REGRESSION")
    logger.info("=" * 60)

    models = []
    for k in range(1, len(predictors) + 1):
        model = QualityRegressionModel(predictors[:k], target=target, name=f"m{k}")
        model.fit(df)
        models.append(model)

    logger.info("R² progression: " + ", ".join(
        f"{m.name}={m.r_squared:.4f}" for m in models
    ))
    logger.info("=" * 60)
    return models


def compare_models(models: Sequence[QualityRegressionModel]) -> pd.DataFrame:
    """
    Side-by-side table of estimates and fit statistics.

    Rows are the union of terms followed by R², adj. R², sigma and N;
    columns are model names. Terms absent from a model are NaN.
    """
    terms = [INTERCEPT]
    for model in models:
        terms.extend(p for p in model.predictors if p not in terms)

    columns = {}
    for model in models:
        estimates = model.coefficient_table()['estimate']
        column = estimates.reindex(terms)
        summary = pd.Series({
            'R²': model.r_squared,
            'adj. R²': model.adj_r_squared,
            'sigma': model.residual_std_error,
            'N': model.n_samples,
        })
        columns[model.name] = pd.concat([column, summary])

    return pd.DataFrame(columns)


def train_models(
    df: pd.DataFrame,
    config: Dict[str, Any],
    save_path: Optional[str] = None
) -> List[QualityRegressionModel]:
    """
    Fit the nested models described in the configuration.

    Args:
        df: Training table
        config: Configuration dictionary
        save_path: Path to save the largest model (optional)

    Returns:
        List of fitted models
    """
    regression_config = config.get('regression') or {}

    models = fit_incremental_models(
        df,
        predictors=regression_config.get('predictors', DEFAULT_PREDICTORS),
        target=regression_config.get('target', 'quality'),
    )

    if save_path:
        models[-1].save(save_path)

    return models


def print_model_summary(models: Sequence[QualityRegressionModel]) -> None:
    """
    Print coefficient tables and the model comparison.

    Args:
        models: Fitted models
    """
    print("\n" + "=" * 70)
    print("REGRESSION SUMMARY")
    print("=" * 70)

    for model in models:
        print(f"\n{model.name}: {model.target} ~ {' + '.join(model.predictors)}")
        print("-" * 70)
        print(model.coefficient_table().to_string(float_format=lambda v: f"{v:.6g}"))
        print(f"R²: {model.r_squared:.4f}   adj. R²: {model.adj_r_squared:.4f}   "
              f"Residual SE: {model.residual_std_error:.4f} on {model.df_resid} df")

    print("\nModel comparison:")
    print("-" * 70)
    print(compare_models(models).to_string(float_format=lambda v: f"{v:.4g}"))
    print("=" * 70 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    rng = np.random.default_rng(42)
    n_samples = 500
    alcohol = rng.normal(10.5, 1.2, n_samples)
    density = 1.0 - 0.002 * alcohol + rng.normal(0, 0.001, n_samples)
    fixed_acidity = rng.normal(7.2, 1.3, n_samples)
    sample_df = pd.DataFrame({
        'alcohol': alcohol,
        'density': density,
        'fixed_acidity': fixed_acidity,
        'quality': np.round(0.4 * alcohol + 0.1 * fixed_acidity + rng.normal(0, 0.7, n_samples)),
    })

    models = fit_incremental_models(sample_df)
    print_model_summary(models)
