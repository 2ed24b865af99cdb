"""Custom exceptions for the wine quality analysis pipeline."""


class WineAnalysisError(RuntimeError):
    """Base class for errors that abort report generation."""


class LoadError(WineAnalysisError):
    """Raised when an input file is missing, empty, or malformed."""


class DomainError(WineAnalysisError):
    """Raised when a quality score lies outside the bucketed (0, 10] range."""


class SingularMatrixError(WineAnalysisError):
    """Raised when the regression predictors are perfectly collinear."""


class InsufficientDataError(WineAnalysisError):
    """Raised when there are too few complete rows to fit or assess a model."""


class UndefinedCorrelationError(WineAnalysisError):
    """Raised when a correlation involves a zero-variance column."""


class OutOfRangeError(WineAnalysisError):
    """Raised when a prediction request extrapolates past the training data."""
