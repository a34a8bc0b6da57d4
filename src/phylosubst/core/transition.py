"""
Transition probabilities and their time derivatives.

Two evaluation paths are provided:

- the general path, from an :class:`~phylosubst.core.matrix.EigenDecomposition`:
  P(t) = V @ diag(exp(lambda * t)) @ V^-1
- the closed form for equal exchangeabilities (F81, and JC when the
  frequencies are uniform):
  P[i,j] = pi_j + (delta_ij - pi_j) * exp(-beta * t),  beta = 1 / (1 - sum(pi^2))

Both return P(0) = I exactly.
"""

import numpy as np
from scipy.linalg import expm

from .matrix import EigenDecomposition


def _check_time(t: float) -> float:
    t = float(t)
    if not np.isfinite(t) or t < 0:
        raise ValueError(f"Branch length must be a finite non-negative number, got {t}")
    return t


def matrix_exponential(Q: np.ndarray, t: float) -> np.ndarray:
    """
    Compute transition probability matrix P(t) = exp(Q*t).

    Uses scipy's matrix exponential (Pade approximation with scaling and
    squaring). Models evaluate P(t) through their eigendecomposition; this is
    the reference used to cross-check it.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Rate matrix
    t : float
        Branch length (time)

    Returns
    -------
    P : ndarray, shape (n, n)
        Transition probability matrix

    Notes
    -----
    The transition probability matrix satisfies:
    - Row sums equal 1 (stochastic matrix)
    - All entries are non-negative
    - P(0) = I (identity matrix)
    - P(t1 + t2) = P(t1) @ P(t2) (semigroup property)
    """
    return expm(Q * _check_time(t))


def compute_trans_matrix(t: float, eig: EigenDecomposition) -> np.ndarray:
    """
    Transition probability matrix from an eigendecomposition.

    Parameters
    ----------
    t : float
        Branch length, t >= 0
    eig : EigenDecomposition
        Decomposition of a normalized rate matrix

    Returns
    -------
    ndarray, shape (n, n)
        P[i,j] = sum_k V[i,k] * exp(lambda_k * t) * V^-1[k,j]
    """
    t = _check_time(t)
    n = eig.num_states
    if t == 0.0:
        return np.eye(n)

    exp_lambda_t = np.exp(eig.eigenvalues * t)
    P = (eig.eigenvectors * exp_lambda_t[np.newaxis, :]) @ eig.inverse_eigenvectors

    # Round-off can push tiny probabilities below zero
    np.maximum(P, 0.0, out=P)
    return P


def compute_trans(t: float, eig: EigenDecomposition, state1: int, state2: int) -> float:
    """
    Single entry P[state1, state2] of the transition matrix.

    Uses the same row-times-matrix arithmetic as :func:`compute_trans_matrix`
    so the result matches the full-matrix entry to rounding.
    """
    t = _check_time(t)
    if t == 0.0:
        return 1.0 if state1 == state2 else 0.0

    exp_lambda_t = np.exp(eig.eigenvalues * t)
    row = eig.eigenvectors[state1] * exp_lambda_t
    return max(float(row @ eig.inverse_eigenvectors[:, state2]), 0.0)


def compute_trans_derv(
    t: float, eig: EigenDecomposition
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Transition matrix with its first and second derivatives in t.

    Parameters
    ----------
    t : float
        Branch length, t >= 0
    eig : EigenDecomposition
        Decomposition of a normalized rate matrix

    Returns
    -------
    P, dP, d2P : ndarray, shape (n, n)
        dP weights each mode by lambda_k, d2P by lambda_k^2.
        At t = 0 these are I, Q and Q @ Q.
    """
    t = _check_time(t)
    lam = eig.eigenvalues
    V = eig.eigenvectors
    V_inv = eig.inverse_eigenvectors

    exp_lambda_t = np.exp(lam * t)
    if t == 0.0:
        P = np.eye(eig.num_states)
    else:
        P = np.maximum((V * exp_lambda_t[np.newaxis, :]) @ V_inv, 0.0)
    dP = (V * (lam * exp_lambda_t)[np.newaxis, :]) @ V_inv
    d2P = (V * (lam * lam * exp_lambda_t)[np.newaxis, :]) @ V_inv
    return P, dP, d2P


def compute_trans_entry_derv(
    t: float, eig: EigenDecomposition, state1: int, state2: int
) -> tuple[float, float, float]:
    """Single entry of :func:`compute_trans_derv` as (p, dp, d2p)."""
    t = _check_time(t)
    lam = eig.eigenvalues
    exp_lambda_t = np.exp(lam * t)
    row = eig.eigenvectors[state1] * exp_lambda_t
    col = eig.inverse_eigenvectors[:, state2]

    if t == 0.0:
        p = 1.0 if state1 == state2 else 0.0
    else:
        p = max(float(row @ col), 0.0)
    row = row * lam
    d1 = float(row @ col)
    row = row * lam
    d2 = float(row @ col)
    return p, d1, d2


def closed_form_beta(pi: np.ndarray) -> float:
    """Rate constant beta = 1 / (1 - sum(pi^2)) of a normalized F81 model."""
    return 1.0 / (1.0 - float(np.dot(pi, pi)))


def closed_form_trans_matrix(t: float, pi: np.ndarray) -> np.ndarray:
    """
    Closed-form P(t) for equal exchangeabilities.

    Parameters
    ----------
    t : float
        Branch length, t >= 0
    pi : ndarray, shape (n,)
        State frequencies

    Returns
    -------
    ndarray, shape (n, n)
        P[i,j] = pi_j + (delta_ij - pi_j) * exp(-beta * t)

    Examples
    --------
    >>> P = closed_form_trans_matrix(0.1, np.ones(4) / 4)
    >>> bool(P[0, 0] > P[0, 1])
    True
    """
    t = _check_time(t)
    n = len(pi)
    if t == 0.0:
        return np.eye(n)

    e = np.exp(-closed_form_beta(pi) * t)
    return pi[np.newaxis, :] + (np.eye(n) - pi[np.newaxis, :]) * e


def closed_form_trans(t: float, pi: np.ndarray, state1: int, state2: int) -> float:
    """Single entry of :func:`closed_form_trans_matrix`."""
    t = _check_time(t)
    delta = 1.0 if state1 == state2 else 0.0
    if t == 0.0:
        return delta

    e = np.exp(-closed_form_beta(pi) * t)
    return float(pi[state2] + (delta - pi[state2]) * e)


def closed_form_trans_derv(
    t: float, pi: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Closed-form P(t), dP/dt and d2P/dt2 for equal exchangeabilities."""
    t = _check_time(t)
    n = len(pi)
    beta = closed_form_beta(pi)
    e = np.exp(-beta * t)
    delta = np.eye(n) - pi[np.newaxis, :]

    P = np.eye(n) if t == 0.0 else pi[np.newaxis, :] + delta * e
    dP = -beta * e * delta
    d2P = beta * beta * e * delta
    return P, dP, d2P


def closed_form_trans_entry_derv(
    t: float, pi: np.ndarray, state1: int, state2: int
) -> tuple[float, float, float]:
    """Single entry of :func:`closed_form_trans_derv` as (p, dp, d2p)."""
    t = _check_time(t)
    beta = closed_form_beta(pi)
    e = float(np.exp(-beta * t))
    delta = (1.0 if state1 == state2 else 0.0) - float(pi[state2])

    p = (1.0 if state1 == state2 else 0.0) if t == 0.0 else float(pi[state2]) + delta * e
    return p, -beta * e * delta, beta * beta * e * delta
