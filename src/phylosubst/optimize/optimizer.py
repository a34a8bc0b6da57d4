"""
Maximum likelihood optimization of substitution model parameters.
"""

import sys
import warnings
from typing import Callable

import numpy as np
from scipy.optimize import minimize

from ..errors import ConvergenceWarning, NumericalError
from .parameters import new_variables
from .results import OptimizationResult

# Returned to the minimizer when the model cannot be evaluated
PENALTY = 1e10


class ModelOptimizer:
    """
    Optimize the free parameters of a substitution model.

    The model's 1-indexed parameter vector is optimized on the log scale with
    scipy's bounded minimizers. Optimization restarts from the best point
    until a round improves the log-likelihood by less than ``epsilon`` or
    ``max_rounds`` is reached.

    Parameters
    ----------
    model : ModelSubst
        Model to optimize, with ``get_ndim() > 0``
    log_likelihood : callable
        Zero-argument callable returning the log-likelihood under the model's
        current parameters
    method : str
        scipy.optimize.minimize method (default 'L-BFGS-B')
    maxiter : int
        Maximum iterations per round
    max_rounds : int
        Maximum number of rounds before giving up with a ConvergenceWarning
    verbose : bool
        Print progress to stderr

    Examples
    --------
    >>> model = DNAModel("HKY", frequencies=[0.3, 0.2, 0.2, 0.3])
    >>> lik = PairwiseLikelihood(model, seq1, seq2, branch_length=0.1)
    >>> result = ModelOptimizer(model, lik).optimize(epsilon=1e-4)
    >>> print(result.summary())
    """

    def __init__(
        self,
        model,
        log_likelihood: Callable[[], float],
        method: str = "L-BFGS-B",
        maxiter: int = 200,
        max_rounds: int = 10,
        verbose: bool = False,
    ):
        self.model = model
        self.log_likelihood = log_likelihood
        self.method = method
        self.maxiter = maxiter
        self.max_rounds = max_rounds
        self.verbose = verbose

        self.ndim = model.get_ndim()
        if self.ndim == 0:
            raise ValueError(f"Model {model.name} has no free parameters to optimize")

        lower, upper = model.get_variable_bounds()
        self.lower = lower[1:]
        self.upper = upper[1:]
        self.history = []

    def _to_variables(self, params: np.ndarray) -> np.ndarray:
        variables = new_variables(self.ndim)
        variables[1:] = np.exp(params)
        return variables

    def compute_log_likelihood(self, params: np.ndarray) -> float:
        """
        Compute negative log-likelihood for optimization.

        Parameters
        ----------
        params : np.ndarray
            Log of the model parameters, 0-indexed

        Returns
        -------
        float
            Negative log-likelihood, or PENALTY if the model cannot be evaluated
        """
        variables = self._to_variables(params)
        try:
            self.model.set_variables(variables)
            lnL = float(self.log_likelihood())
        except NumericalError as e:
            if self.verbose:
                print(f"Error computing likelihood: {e}", file=sys.stderr)
            return PENALTY

        if not np.isfinite(lnL):
            return PENALTY

        self.history.append({
            **{f"x{i}": float(v) for i, v in enumerate(variables[1:], start=1)},
            "log_likelihood": lnL,
        })
        return -lnL

    def optimize(self, epsilon: float = 0.001) -> OptimizationResult:
        """
        Optimize parameters to maximize likelihood.

        Parameters
        ----------
        epsilon : float
            Convergence threshold on the log-likelihood improvement of a round

        Returns
        -------
        OptimizationResult
            The model is left at the best parameters found
        """
        self.history = []

        # Start from the model as it stands; its parameters are already in bounds
        start = self.model.get_variables()[1:]
        initial_lnL = float(self.log_likelihood())

        best_x = np.log(np.clip(start, self.lower, self.upper))
        best_lnL = initial_lnL
        bounds = list(zip(np.log(self.lower), np.log(self.upper)))

        if self.verbose:
            print(
                f"Optimizing {self.ndim} parameters of {self.model.name} "
                f"with method={self.method}, maxiter={self.maxiter}",
                file=sys.stderr,
            )
            print(f"Initial log-likelihood: {initial_lnL:.6f}", file=sys.stderr)

        converged = False
        result = None
        n_rounds = 0
        for n_rounds in range(1, self.max_rounds + 1):
            result = minimize(
                self.compute_log_likelihood,
                best_x,
                method=self.method,
                bounds=bounds,
                options={"maxiter": self.maxiter},
            )
            lnL = -float(result.fun)
            improvement = lnL - best_lnL
            if lnL > best_lnL:
                best_x, best_lnL = np.asarray(result.x, dtype=float), lnL

            if self.verbose:
                print(
                    f"Round {n_rounds}: log-likelihood {best_lnL:.6f} "
                    f"(improvement {improvement:.3e})",
                    file=sys.stderr,
                )
            if improvement < epsilon:
                converged = True
                break

        if not converged:
            warnings.warn(
                f"Optimization of {self.model.name} stopped after {n_rounds} rounds "
                f"without reaching epsilon={epsilon}; keeping the best parameters found",
                ConvergenceWarning,
            )

        # Leave the model at the optimum, with Q decomposed for these values
        best_variables = self._to_variables(best_x)
        self.model.set_variables(best_variables)
        final_lnL = float(self.log_likelihood())

        if self.verbose:
            print(f"Final log-likelihood: {final_lnL:.6f}", file=sys.stderr)

        return OptimizationResult(
            model_name=self.model.name,
            log_likelihood=final_lnL,
            initial_log_likelihood=initial_lnL,
            variables=best_variables,
            n_rounds=n_rounds,
            n_evaluations=len(self.history),
            converged=converged,
            success=bool(result.success) if result is not None else False,
            message=str(result.message) if result is not None else "",
            history=list(self.history),
        )
