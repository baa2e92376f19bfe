"""
Error Taxonomy
==============
Exceptions raised inside the FMMC engine and the warning category used
for recoverable diagnostics.

Propagation:
    Asset level:      InputShapeError, InsufficientHistoryError and
                      FactorFitError are caught by the distribution
                      builder and turned into a Failed result.
    Replicate level:  FmmcBootstrapError and estimator errors propagate
                      out of the bootstrap unchanged.
"""


class FmmcError(Exception):
    """Base class for all FMMC engine errors."""


class InputShapeError(FmmcError, ValueError):
    """Return or factor input has no row dimension."""


class InsufficientHistoryError(FmmcError, ValueError):
    """Factor history is shorter than the asset history."""


class FactorFitError(FmmcError, RuntimeError):
    """Time-series factor model fitting failed for an asset."""


class FmmcBootstrapError(FmmcError, RuntimeError):
    """A bootstrap replicate could not rebuild its joint distribution."""


class FmmcWarning(UserWarning):
    """Diagnostic emitted for recoverable conditions."""
