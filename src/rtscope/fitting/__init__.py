"""
Windowed polynomial regression with error propagation.
"""

from rtscope.fitting.approximation import (
    FitSummary,
    FitType,
    RegressionResult,
    fit,
    measurement_to_string,
    next_fit_type,
    polyfit,
    summarize,
    transform_coefficients,
)

__all__ = [
    "FitType",
    "FitSummary",
    "RegressionResult",
    "fit",
    "polyfit",
    "transform_coefficients",
    "summarize",
    "measurement_to_string",
    "next_fit_type",
]
