from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from loguru import logger
from numpy.polynomial import polynomial as P
from scipy import linalg

from rtscope.errors import DegenerateWindow, InsufficientData
from rtscope.oscplot.data_manager import TimeSeriesStore
from rtscope.oscplot.display_state import TimeWindow

# --- Constants ---
MIN_FIT_SAMPLES = 3  # Uniform floor regardless of degree
DEFAULT_DIGITS = 3  # Decimal places when the error gives no magnitude hint


class FitType(IntEnum):
    """Polynomial degree of the overlay fit."""

    CONSTANT = 0
    LINEAR = 1
    QUADRATIC = 2

    @property
    def degree(self) -> int:
        return int(self)


def next_fit_type(current: Optional[FitType]) -> Optional[FitType]:
    """Cycle Off -> Constant -> Linear -> Quadratic -> Off."""
    if current is None:
        return FitType.CONSTANT
    if current is FitType.QUADRATIC:
        return None
    return FitType(current + 1)


@dataclass(frozen=True)
class RegressionResult:
    """
    Polynomial fit in physical (grid) units.

    ``coefficients[k]`` multiplies ``t**k``; ``standard_errors`` and
    ``covariance`` follow the same ordering.
    """

    degree: int
    coefficients: np.ndarray
    standard_errors: np.ndarray
    covariance: np.ndarray
    mse: float
    sample_count: int

    def evaluate(self, t: np.ndarray) -> np.ndarray:
        """Evaluate the fitted polynomial at raw time values."""
        return P.polyval(np.asarray(t, dtype=np.float64), self.coefficients)


@dataclass(frozen=True)
class FitSummary:
    """Fit re-expressed in a physically meaningful basis, for labelling."""

    degree: int
    names: Tuple[str, ...]
    coefficients: np.ndarray
    standard_errors: np.ndarray
    channel: Optional[int] = None

    @property
    def label(self) -> str:
        parts = [
            f"{name} = {measurement_to_string(value, error)}"
            for name, value, error in zip(
                self.names, self.coefficients, self.standard_errors
            )
        ]
        # Highest-order quantity first, as on the plot title
        return "   ".join(reversed(parts))


def _normalize(v: np.ndarray) -> Tuple[np.ndarray, float, float]:
    """Center on the mean and scale by the span. Returns (normalized, mean, span)."""
    mean = float(np.mean(v))
    span = float(np.max(v) - np.min(v))
    scale = span if span > 0 else 1.0
    return (v - mean) / scale, mean, span


def _svd_solve(a: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve ``a @ c = y`` in the least-squares sense via the SVD pseudo-inverse.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        Coefficients and the unit covariance ``V diag(1/s**2) V^T``.

    Raises
    ------
    DegenerateWindow
        If the design matrix is rank deficient.
    """
    u, s, vt = linalg.svd(a, full_matrices=False)
    cutoff = max(a.shape) * np.finfo(np.float64).eps * s[0]
    if s[-1] <= cutoff:
        raise DegenerateWindow(
            f"Design matrix is singular (singular values {s}, cutoff {cutoff:.3e})"
        )
    coefficients = vt.T @ ((u.T @ y) / s)
    unit_covariance = (vt.T / s**2) @ vt
    return coefficients, unit_covariance


# Jacobians of physical coefficients with respect to normalized ones, divided
# by the value span. Normalized model: y' = sum c_k u**k with u = (t - m) / s.
def _unnormalize_constant(m: float, s: float) -> np.ndarray:
    return np.array([[1.0]])


def _unnormalize_linear(m: float, s: float) -> np.ndarray:
    return np.array(
        [
            [1.0, -m / s],
            [0.0, 1.0 / s],
        ]
    )


def _unnormalize_quadratic(m: float, s: float) -> np.ndarray:
    return np.array(
        [
            [1.0, -m / s, m * m / (s * s)],
            [0.0, 1.0 / s, -2.0 * m / (s * s)],
            [0.0, 0.0, 1.0 / (s * s)],
        ]
    )


_UNNORMALIZE: Dict[int, Callable[[float, float], np.ndarray]] = {
    0: _unnormalize_constant,
    1: _unnormalize_linear,
    2: _unnormalize_quadratic,
}


def polyfit(t: np.ndarray, y: np.ndarray, degree: int) -> RegressionResult:
    """
    Fit a polynomial of degree 0, 1 or 2 with propagated standard errors.

    Both axes are centered and scaled before fitting so that large raw
    timestamps over a short window do not produce an ill-conditioned design
    matrix. The result is transformed back to raw units exactly.

    Parameters
    ----------
    t : np.ndarray
        Sample times, in grid-time units.
    y : np.ndarray
        Sample values.
    degree : int
        Polynomial degree, one of 0, 1, 2.

    Returns
    -------
    RegressionResult
        Coefficients (lowest order first), standard errors and covariance.

    Raises
    ------
    InsufficientData
        Fewer than 3 samples, or no residual degrees of freedom.
    DegenerateWindow
        All times identical, or a rank-deficient design matrix.
    """
    if degree not in _UNNORMALIZE:
        raise ValueError(f"Invalid degree: {degree}. Must be one of 0, 1, 2.")

    t = np.asarray(t, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if len(t) != len(y):
        raise ValueError(
            f"Time and value arrays must have the same length. Got t={len(t)}, y={len(y)}"
        )

    n = len(t)
    dof = n - degree - 1
    if n < MIN_FIT_SAMPLES:
        raise InsufficientData(f"Need at least {MIN_FIT_SAMPLES} samples, got {n}")
    if dof <= 0:
        raise InsufficientData(
            f"No degrees of freedom left for degree {degree} with {n} samples"
        )

    t_norm, mean_t, span_t = _normalize(t)
    if span_t == 0:
        raise DegenerateWindow("All sample times in the fit window are identical")
    # A flat signal keeps unit scale: it is a valid (exact) fit
    y_norm, mean_y, span_y = _normalize(y)
    scale_y = span_y if span_y > 0 else 1.0

    design = np.vander(t_norm, degree + 1, increasing=True)
    c_norm, unit_cov = _svd_solve(design, y_norm)

    residuals = y_norm - design @ c_norm
    mse = float(np.sum(residuals**2) / dof) * scale_y**2

    jac = _UNNORMALIZE[degree](mean_t, span_t)
    coefficients = scale_y * (jac @ c_norm)
    coefficients[0] += mean_y
    variances_factor = jac @ unit_cov @ jac.T
    covariance = variances_factor * mse
    standard_errors = np.sqrt(np.clip(np.diag(variances_factor) * mse, 0.0, None))

    logger.debug(
        f"Degree {degree} fit on {n} samples: coefficients={coefficients}, errors={standard_errors}, mse={mse:.3e}"
    )
    return RegressionResult(
        degree=degree,
        coefficients=coefficients,
        standard_errors=standard_errors,
        covariance=covariance,
        mse=mse,
        sample_count=n,
    )


def fit(
    store: TimeSeriesStore, window: TimeWindow, degree: int, channel: int
) -> RegressionResult:
    """
    Fit one channel of the store inside a time window.

    Call while holding the store's snapshot.

    Raises
    ------
    DegenerateWindow
        If the window is inverted or collapsed.
    InsufficientData
        See :func:`polyfit`.
    """
    if window.is_empty:
        raise DegenerateWindow(
            f"Fit window [{window.start}, {window.end}) is empty or inverted"
        )
    samples = store.range_query(window)
    return polyfit(samples.times(), samples.values(channel), degree)


# Physical bases: each returns (values, jacobian) from raw coefficients
def _physical_constant(p: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    return p.copy(), np.eye(1)


def _physical_linear(p: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    b, a = p
    if a == 0:
        raise DegenerateWindow("Zero slope: time intercept is undefined")
    values = np.array([-b / a, a])
    jac = np.array(
        [
            [-1.0 / a, b / (a * a)],
            [0.0, 1.0],
        ]
    )
    return values, jac


def _physical_quadratic(p: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    c, b, a = p
    if a == 0:
        raise DegenerateWindow("Zero curvature: vertex is undefined")
    values = np.array([c - b * b / (4.0 * a), b / (2.0 * a), 2.0 * a])
    jac = np.array(
        [
            [1.0, -b / (2.0 * a), b * b / (4.0 * a * a)],
            [0.0, 1.0 / (2.0 * a), -b / (2.0 * a * a)],
            [0.0, 0.0, 2.0],
        ]
    )
    return values, jac


_PHYSICAL = {
    0: (("y",), _physical_constant),
    1: (("t₀", "k"), _physical_linear),
    2: (("y₀", "t₀", "a"), _physical_quadratic),
}


def transform_coefficients(result: RegressionResult) -> Tuple[np.ndarray, np.ndarray]:
    """
    Re-express a fit in a physical basis with delta-method errors.

    - constant: value
    - linear: time intercept ``-b/a`` and slope ``a``
    - quadratic: vertex value ``c - b**2/4a``, vertex time offset ``b/2a``
      and curvature ``2a``, i.e. ``y = 2a/2 * (t + b/2a)**2 + y0``

    Raises
    ------
    DegenerateWindow
        If the leading coefficient is zero for degree 1 or 2.
    """
    _, transform = _PHYSICAL[result.degree]
    values, jac = transform(result.coefficients)
    variances = np.diag(jac @ result.covariance @ jac.T)
    return values, np.sqrt(np.clip(variances, 0.0, None))


def summarize(result: RegressionResult, channel: Optional[int] = None) -> FitSummary:
    """Build the labelled physical-basis summary of a fit."""
    names, _ = _PHYSICAL[result.degree]
    values, errors = transform_coefficients(result)
    return FitSummary(
        degree=result.degree,
        names=names,
        coefficients=values,
        standard_errors=errors,
        channel=channel,
    )


def measurement_to_string(value: float, error: float) -> str:
    """
    Format ``value ± error`` with decimals chosen from the error's magnitude.

    Examples
    --------
    >>> measurement_to_string(1.23456, 0.012)
    '1.235 ± 0.012'
    """
    if error > 0 and np.isfinite(error):
        magnitude = int(round(float(np.log10(error))))
        digits = -magnitude + 1 if magnitude < 0 else 1
    else:
        digits = DEFAULT_DIGITS
    return f"{value:.{digits}f} ± {error:.{digits}f}"
