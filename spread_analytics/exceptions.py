"""
Error taxonomy for the spread analytics engine.

Structural failures (too little data, singular design matrices, bad
parameters) are raised as these types. Numerical edge cases with a
well-defined neutral answer are resolved locally and never raised.
"""

import numpy as np


class AnalysisError(Exception):
    """Base class for every error raised by spread_analytics."""


class InsufficientDataError(AnalysisError, ValueError):
    """Fewer points than a window, model or test requires."""


class InsufficientObservationsError(InsufficientDataError):
    """A regression has fewer observations than parameters."""


class SingularMatrixError(AnalysisError, np.linalg.LinAlgError):
    """A design matrix (X'X) is numerically singular."""


class InvalidParameterError(AnalysisError, ValueError):
    """A configuration value is out of range or unknown."""
