"""
Packing of model parameters into optimizer vectors.

Parameter vectors exchanged with models are indexed from 1: a model with
``ndim`` free parameters reads and writes ``variables[1:ndim + 1]`` and
``variables[0]`` is unused. :class:`~phylosubst.optimize.optimizer.ModelOptimizer`
is the only place that converts to scipy's 0-indexed arrays.
"""

import numpy as np

from ..errors import InvalidDimensionError, ParameterOutOfDomainError

# Bounds on free exchangeability rates (reference rate fixed to 1)
MIN_RATE = 1e-4
MAX_RATE = 100.0

# Bounds on frequency ratios pi_i / pi_last
MIN_FREQ_RATIO = 1e-4
MAX_FREQ_RATIO = 100.0


def new_variables(ndim: int) -> np.ndarray:
    """Allocate a zeroed 1-indexed parameter vector for ``ndim`` parameters."""
    return np.zeros(ndim + 1)


def check_variables(variables: np.ndarray, ndim: int) -> np.ndarray:
    """
    Validate a 1-indexed parameter vector.

    Raises
    ------
    InvalidDimensionError
        If the vector does not hold exactly ``ndim`` parameters after index 0
    ParameterOutOfDomainError
        If any parameter is NaN or infinite
    """
    variables = np.asarray(variables, dtype=float)
    if variables.ndim != 1 or len(variables) != ndim + 1:
        raise InvalidDimensionError(
            f"Expected parameter vector of length {ndim + 1} (index 0 unused), "
            f"got shape {variables.shape}"
        )
    if not np.all(np.isfinite(variables[1:])):
        raise ParameterOutOfDomainError(f"Non-finite parameter values: {variables[1:]}")
    return variables


def clamp(values: np.ndarray, lower: float, upper: float) -> tuple[np.ndarray, bool]:
    """
    Project values into [lower, upper].

    Returns
    -------
    tuple
        (clamped copy, whether any value was moved)
    """
    values = np.asarray(values, dtype=float)
    clamped = np.clip(values, lower, upper)
    return clamped, bool(np.any(clamped != values))


def frequencies_to_ratios(pi: np.ndarray) -> np.ndarray:
    """Free frequency parameters pi_i / pi_last for i < n-1."""
    pi = np.asarray(pi, dtype=float)
    return pi[:-1] / pi[-1]


def ratios_to_frequencies(ratios: np.ndarray) -> np.ndarray:
    """
    Map frequency ratios back onto the simplex.

    Examples
    --------
    >>> ratios_to_frequencies(np.array([1.0, 1.0, 1.0]))
    array([0.25, 0.25, 0.25, 0.25])
    """
    full = np.append(np.asarray(ratios, dtype=float), 1.0)
    return full / full.sum()


def normalize_frequencies(pi: np.ndarray, num_states: int) -> np.ndarray:
    """
    Check and normalize a state frequency vector.

    Raises
    ------
    InvalidDimensionError
        If the length is not ``num_states``
    ParameterOutOfDomainError
        If any frequency is not strictly positive and finite
    """
    pi = np.asarray(pi, dtype=float)
    if pi.shape != (num_states,):
        raise InvalidDimensionError(
            f"State frequencies must have length {num_states}, got {pi.size}"
        )
    if not np.all(np.isfinite(pi)) or np.any(pi <= 0):
        raise ParameterOutOfDomainError(
            f"State frequencies must be positive and finite, got {pi}"
        )
    return pi / pi.sum()
