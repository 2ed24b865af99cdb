"""
Wine Quality Analysis
=====================

Exploratory analysis and linear modelling of the red and white wine
quality datasets.

Modules:
    - data_loader: CSV ingestion and validation
    - preprocessing: Quality buckets and categories
    - eda: Descriptive statistics, correlations and figures
    - model: OLS regression of quality
    - prediction: Prediction intervals for new rows
    - evaluation: Model diagnostics
    - exceptions: Error types raised by the pipeline
"""

__version__ = "1.0.0"
__author__ = "Wine Quality Analysis Team"
