"""Exception types raised by the forecasting models.

Validation errors derive from ValueError so that callers catching ValueError, as the
rest of the framework does, keep working.
"""


class ForecastingError(Exception):
    """Base class for all errors raised by the forecasting models."""
    pass


class InvalidInputError(ForecastingError, ValueError):
    """Null, empty, non-finite or mismatched-length inputs."""
    pass


class SingularDesignError(ForecastingError, ValueError):
    """The regression design matrix X'X is singular (collinear or rank-deficient features)."""
    pass


class DimensionMismatchError(ForecastingError, ValueError):
    """A prediction row does not have the number of features the model was fitted with."""
    pass


class InvalidOrderError(ForecastingError, ValueError):
    """A SARIMA order component is negative or not an integer."""
    pass


class MissingSeriesForIntegrationError(ForecastingError, ValueError):
    """An original-scale forecast needs the undifferenced series but none was given."""
    pass


class NotFittedError(ForecastingError, RuntimeError):
    """A model was used before it was fitted."""
    pass
