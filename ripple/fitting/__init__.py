"""Curve fitting."""
from ripple.fitting.logistic import (
    CurveFitError, four_pl, initial_guess, fit_four_pl, r_squared
)

__all__ = ["CurveFitError", "four_pl", "initial_guess", "fit_four_pl", "r_squared"]
