"""Four-parameter logistic (4PL) dose-response fitting.

Model: response(t) = (bottom - top) / (1 + (t / ec50) ** hill) + top

Fitted by Levenberg-Marquardt least squares on log10(ec50) so the
midpoint stays positive while the solver iterates.
"""
import logging
import warnings
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit

from ripple.config import settings
from ripple.models.analysis import CurveFitResult

logger = logging.getLogger(__name__)

N_PARAMS = 4


class CurveFitError(RuntimeError):
    """Fit did not converge or produced non-finite parameters."""


def four_pl(x, top: float, bottom: float, hill: float, ec50: float):
    """Evaluate the 4PL model at concentration(s) ``x``."""
    x = np.asarray(x, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return (bottom - top) / (1.0 + np.power(x / ec50, hill)) + top


def _four_pl_log_ec50(x, top, bottom, hill, log_ec50):
    return four_pl(x, top, bottom, hill, 10.0 ** log_ec50)


def initial_guess(concentrations: Sequence[float], responses: Sequence[float]) -> Tuple[float, float, float, float]:
    """
    Starting point for the fit as (top, bottom, hill, ec50).
    
    bottom/top are the response extremes, the hill sign follows a straight
    line fitted through the data, and ec50 is the concentration whose
    response sits closest to the midpoint of the extremes.
    """
    x = np.asarray(concentrations, dtype=float)
    y = np.asarray(responses, dtype=float)
    
    bottom = float(np.min(y))
    top = float(np.max(y))
    
    slope = 0.0
    if len(np.unique(x)) > 1:
        slope = float(np.polyfit(x, y, 1)[0])
    hill = 1.0 if slope >= 0 else -1.0
    
    midpoint = (bottom + top) / 2
    ec50 = float(x[int(np.argmin(np.abs(y - midpoint)))])
    if ec50 <= 0:
        positive = x[x > 0]
        ec50 = float(np.median(positive)) if len(positive) else 1.0
    
    return top, bottom, hill, ec50


def r_squared(responses: Sequence[float], predicted: Sequence[float]) -> Optional[float]:
    """Coefficient of determination; None when the responses are flat."""
    y = np.asarray(responses, dtype=float)
    ss_res = float(np.sum((y - np.asarray(predicted, dtype=float)) ** 2))
    ss_tot = float(np.sum((y - np.mean(y)) ** 2))
    if ss_tot <= 0 or not np.isfinite(ss_res):
        return None
    return 1.0 - ss_res / ss_tot


def fit_four_pl(
    concentrations: Sequence[float],
    responses: Sequence[float],
    max_iterations: Optional[int] = None
) -> CurveFitResult:
    """
    Fit the 4PL model to per-well points.
    
    Args:
        concentrations: Concentration of each point (µM)
        responses: Response of each point
        max_iterations: Solver iteration bound (defaults to settings)
        
    Returns:
        CurveFitResult with fitted parameters and R²
        
    Raises:
        CurveFitError: if the solver fails or the result is not finite
    """
    x = np.asarray(concentrations, dtype=float)
    y = np.asarray(responses, dtype=float)
    if len(x) != len(y):
        raise CurveFitError(f"Length mismatch: {len(x)} concentrations vs {len(y)} responses")
    if len(x) < N_PARAMS:
        raise CurveFitError(f"Need at least {N_PARAMS} points for a 4PL fit, got {len(x)}")
    
    iterations = max_iterations or settings.fit_max_iterations
    top, bottom, hill, ec50 = initial_guess(x, y)
    
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", OptimizeWarning)
            warnings.simplefilter("ignore", RuntimeWarning)
            popt, _ = curve_fit(
                _four_pl_log_ec50, x, y,
                p0=[top, bottom, hill, np.log10(ec50)],
                method="lm",
                maxfev=iterations * (N_PARAMS + 1),
            )
    except (RuntimeError, ValueError, TypeError) as e:
        raise CurveFitError(f"Curve fit did not converge: {e}") from e
    
    if not np.all(np.isfinite(popt)):
        raise CurveFitError("Curve fit produced non-finite parameters")
    
    fit_top, fit_bottom, fit_hill, log_ec50 = (float(p) for p in popt)
    fit_ec50 = 10.0 ** log_ec50
    if not np.isfinite(fit_ec50):
        raise CurveFitError("Curve fit produced a non-finite EC50")
    
    predicted = four_pl(x, fit_top, fit_bottom, fit_hill, fit_ec50)
    
    return CurveFitResult(
        top=fit_top,
        bottom=fit_bottom,
        hill=fit_hill,
        ec50=fit_ec50,
        r_squared=r_squared(y, predicted)
    )
