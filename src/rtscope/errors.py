"""
Exception hierarchy shared by the store, the regression engine and ingestion.
"""


class ScopeError(Exception):
    """Base class for all rtscope errors."""


class ConfigMismatch(ScopeError):
    """A sample or configuration disagrees with the configured channel layout."""


class MalformedSample(ScopeError, ValueError):
    """An input line could not be parsed into a timestamp and channel values."""


class FitError(ScopeError):
    """A regression could not be computed for the current frame."""


class InsufficientData(FitError):
    """Too few samples in the fit window (or no residual degrees of freedom)."""


class DegenerateWindow(FitError):
    """Zero-span time axis, inverted window or rank-deficient design matrix."""
