"""
Rate matrix construction and eigendecomposition.

This module builds reversible rate matrices from exchangeabilities and
stationary frequencies, and decomposes them through the symmetric similarity
transform that reversibility allows.
"""

from dataclasses import dataclass

import numpy as np

from ..errors import InvalidDimensionError, NonReversibleMatrixError, NumericalError

# Largest |eigenvalue| accepted as the stationary zero eigenvalue, relative to
# the spectral radius of Q.
EIGEN_TOLERANCE = 1e-8

# Relative tolerance for the detailed balance check.
REVERSIBILITY_RTOL = 1e-8

# Absolute tolerance for Q row sums.
ROW_SUM_ATOL = 1e-10


@dataclass(frozen=True)
class EigenDecomposition:
    """
    Eigendecomposition Q = V @ diag(eigenvalues) @ V^-1 of a rate matrix.

    Attributes
    ----------
    eigenvalues : ndarray, shape (n,)
        Eigenvalues in ascending order; the last one is exactly 0.
    eigenvectors : ndarray, shape (n, n)
        Right eigenvectors V (columns). The column for eigenvalue 0 is all ones.
    inverse_eigenvectors : ndarray, shape (n, n)
        V^-1 (rows). The row for eigenvalue 0 is the stationary distribution.
    """

    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    inverse_eigenvectors: np.ndarray

    @property
    def num_states(self) -> int:
        return len(self.eigenvalues)

    def reconstruct(self) -> np.ndarray:
        """Rebuild Q from the decomposition."""
        return (self.eigenvectors * self.eigenvalues[np.newaxis, :]) @ self.inverse_eigenvectors


def num_rate_entries(num_states: int) -> int:
    """Number of entries in the upper triangle of an n x n rate matrix."""
    return num_states * (num_states - 1) // 2


def rates_to_matrix(rates: np.ndarray, num_states: int) -> np.ndarray:
    """
    Expand an upper-triangular rate vector into a symmetric matrix.

    Parameters
    ----------
    rates : ndarray, shape (n*(n-1)/2,)
        Exchangeabilities in row-major upper-triangle order
        (0,1), (0,2), ..., (0,n-1), (1,2), ..., (n-2,n-1).
        For DNA (A, C, G, T) this is AC, AG, AT, CG, CT, GT.
    num_states : int
        Number of states n

    Returns
    -------
    ndarray, shape (n, n)
        Symmetric exchangeability matrix with zero diagonal
    """
    rates = np.asarray(rates, dtype=float)
    expected = num_rate_entries(num_states)
    if rates.shape != (expected,):
        raise InvalidDimensionError(
            f"Expected {expected} rate entries for {num_states} states, got {rates.size}"
        )

    R = np.zeros((num_states, num_states))
    iu = np.triu_indices(num_states, k=1)
    R[iu] = rates
    return R + R.T


def matrix_to_rates(R: np.ndarray) -> np.ndarray:
    """Extract the upper-triangular rate vector from a square matrix."""
    return R[np.triu_indices(R.shape[0], k=1)].copy()


def expected_rate(Q: np.ndarray, pi: np.ndarray) -> float:
    """Expected substitution rate at stationarity, -sum(pi_i * Q[i,i])."""
    return float(-np.dot(pi, Q.diagonal()))


def create_reversible_Q(
    rates: np.ndarray, pi: np.ndarray, normalize: bool = True
) -> np.ndarray:
    """
    Create a reversible rate matrix from exchangeability rates and stationary distribution.

    Parameters
    ----------
    rates : ndarray, shape (n, n) or (n*(n-1)/2,)
        Symmetric exchangeability matrix (r[i,j] = r[j,i]) or its upper triangle
    pi : ndarray, shape (n,)
        Stationary distribution (equilibrium frequencies)
    normalize : bool, default=True
        If True, scale Q so that expected rate is 1 substitution per time unit

    Returns
    -------
    Q : ndarray, shape (n, n)
        Reversible rate matrix satisfying detailed balance

    Notes
    -----
    The rate matrix is constructed as Q[i,j] = r[i,j] * pi[j] for i != j,
    and Q[i,i] = -sum(Q[i,j] for j != i).

    Examples
    --------
    >>> # JC69 model
    >>> pi = np.ones(4) / 4
    >>> Q = create_reversible_Q(np.ones(6), pi)
    >>> round(expected_rate(Q, pi), 12)
    1.0
    """
    pi = np.asarray(pi, dtype=float)
    n = len(pi)
    rates = np.asarray(rates, dtype=float)
    if rates.ndim == 1:
        rates = rates_to_matrix(rates, n)
    elif rates.shape != (n, n):
        raise InvalidDimensionError(
            f"Rate matrix has shape {rates.shape}, expected ({n}, {n})"
        )

    # Q[i,j] = r[i,j] * pi_j
    Q = rates * pi[np.newaxis, :]

    # Diagonal first zeroed in case rates has a non-zero diagonal
    np.fill_diagonal(Q, 0.0)
    np.fill_diagonal(Q, -Q.sum(axis=1))

    if normalize:
        mu = expected_rate(Q, pi)
        if not mu > 0:
            raise NumericalError(f"Rate matrix has non-positive expected rate {mu}")
        Q /= mu

    return Q


def check_row_sums(Q: np.ndarray, atol: float = ROW_SUM_ATOL) -> bool:
    """Test that every row of Q sums to zero within atol (scaled by |Q|)."""
    scale = max(1.0, float(np.abs(Q.diagonal()).max(initial=0.0)))
    return bool(np.all(np.abs(Q.sum(axis=1)) <= atol * scale))


def check_detailed_balance(Q: np.ndarray, pi: np.ndarray, rtol: float = REVERSIBILITY_RTOL) -> bool:
    """
    Test if rate matrix Q satisfies detailed balance with stationary distribution pi.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Rate matrix
    pi : ndarray, shape (n,)
        Proposed stationary distribution
    rtol : float
        Relative tolerance for comparison

    Returns
    -------
    bool
        True if pi_i * Q[i,j] == pi_j * Q[j,i] for all i, j

    Notes
    -----
    Detailed balance: pi_i * Q[i,j] = pi_j * Q[j,i] for all i, j
    """
    flux = pi[:, np.newaxis] * Q
    atol = rtol * float(np.abs(flux).max(initial=0.0))
    return bool(np.allclose(flux, flux.T, rtol=rtol, atol=atol))


def eigen_decompose_rev(
    Q: np.ndarray, pi: np.ndarray, tol: float = EIGEN_TOLERANCE
) -> EigenDecomposition:
    """
    Eigendecompose reversible rate matrix Q = V @ diag(eigenvalues) @ V^-1.

    Uses symmetrization trick for reversible rate matrices:
    transform Q to the symmetric matrix S = D^1/2 @ Q @ D^-1/2, where D = diag(pi),
    eigendecompose S with a symmetric solver and transform back.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Reversible rate matrix satisfying detailed balance
    pi : ndarray, shape (n,)
        Stationary distribution (equilibrium frequencies)
    tol : float
        Tolerance, relative to the spectral radius, for the zero eigenvalue

    Returns
    -------
    EigenDecomposition
        Eigenvalues in ascending order with the last one exactly 0

    Raises
    ------
    NonReversibleMatrixError
        If Q does not satisfy detailed balance with pi
    NumericalError
        If the decomposition has no zero eigenvalue, a positive eigenvalue,
        or non-finite entries

    Notes
    -----
    The zero eigenvalue and its eigenvectors are set by construction rather
    than taken from the solver: the right eigenvector is all ones and the
    left eigenvector is pi. This makes P(t) converge exactly to the
    stationary distribution as t grows.

    Examples
    --------
    >>> pi = np.array([0.25, 0.25, 0.25, 0.25])
    >>> Q = create_reversible_Q(np.ones(6), pi)
    >>> eig = eigen_decompose_rev(Q, pi)
    >>> np.allclose(Q, eig.reconstruct())
    True
    """
    pi = np.asarray(pi, dtype=float)
    n = len(pi)
    if Q.shape != (n, n):
        raise InvalidDimensionError(f"Q has shape {Q.shape}, expected ({n}, {n})")
    if np.any(pi <= 0):
        raise NumericalError("State frequencies must be strictly positive to decompose Q")
    if not check_detailed_balance(Q, pi):
        raise NonReversibleMatrixError(
            "Rate matrix does not satisfy detailed balance with its state frequencies"
        )

    sqrt_pi = np.sqrt(pi)

    # S = D^1/2 @ Q @ D^-1/2 is symmetric under detailed balance;
    # averaging with its transpose removes round-off asymmetry
    S = Q * sqrt_pi[:, np.newaxis] / sqrt_pi[np.newaxis, :]
    S = 0.5 * (S + S.T)

    try:
        eigenvalues, W = np.linalg.eigh(S)
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"Eigendecomposition did not converge: {e}") from e

    if not (np.all(np.isfinite(eigenvalues)) and np.all(np.isfinite(W))):
        raise NumericalError("Eigendecomposition produced non-finite values")

    scale = max(1.0, float(np.abs(eigenvalues).max()))
    if abs(eigenvalues[-1]) > tol * scale:
        raise NumericalError(
            f"Largest eigenvalue {eigenvalues[-1]:.3e} is not zero; "
            "rate matrix rows may not sum to zero"
        )
    if n > 1 and eigenvalues[-2] > tol * scale:
        raise NumericalError(
            f"Rate matrix has a positive eigenvalue {eigenvalues[-2]:.3e}"
        )

    # Stationary mode by construction
    eigenvalues = eigenvalues.copy()
    eigenvalues[-1] = 0.0
    W = W.copy()
    W[:, -1] = sqrt_pi

    # Remaining eigenvalues are <= 0 up to tolerance; round-off above 0 is clipped
    np.minimum(eigenvalues[:-1], 0.0, out=eigenvalues[:-1])

    V = W / sqrt_pi[:, np.newaxis]
    V_inv = W.T * sqrt_pi[np.newaxis, :]

    return EigenDecomposition(
        eigenvalues=eigenvalues, eigenvectors=V, inverse_eigenvectors=V_inv
    )
