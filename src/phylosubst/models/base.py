"""
Substitution model base class.

:class:`ModelSubst` defines the interface every substitution model exposes to
a likelihood engine and to the parameter optimizer. Its own implementation is
the Jukes-Cantor model, valid for any number of states: all exchangeabilities
are equal, frequencies are uniform and there are no free parameters.
Concrete models override only what differs.
"""

import sys
from enum import Enum
from typing import Callable, Optional, TextIO

import numpy as np

from ..core.matrix import create_reversible_Q, num_rate_entries
from ..core.transition import (
    closed_form_trans,
    closed_form_trans_entry_derv,
    closed_form_trans_derv,
    closed_form_trans_matrix,
)
from ..errors import InvalidDimensionError
from ..optimize.parameters import check_variables, new_variables


class StateFreqType(str, Enum):
    """How the state frequencies of a model were obtained."""
    EQUAL = "equal"
    EMPIRICAL = "empirical"
    USER_DEFINED = "user_defined"
    OPTIMIZED = "optimized"


class ModelSubst:
    """
    Substitution model with Jukes-Cantor defaults.

    Parameters
    ----------
    num_states : int
        Number of states, e.g. 4 for DNA, 20 for proteins, 2 for binary data

    Attributes
    ----------
    num_states : int
        Size of the state space
    name : str
        Short model name
    full_name : str
        Descriptive model name
    freq_type : StateFreqType
        How the state frequencies were obtained
    likelihood_function : callable, optional
        Zero-argument callable returning the current log-likelihood, used by
        :meth:`optimize_parameters`

    Notes
    -----
    A model instance is not thread-safe. Writers (:meth:`set_variables`,
    :meth:`decompose_rate_matrix` and the setters of subclasses) must not run
    concurrently with readers on the same instance. Separate instances share
    no state.

    Examples
    --------
    >>> model = ModelSubst(4)
    >>> P = model.compute_trans_matrix(0.1)
    >>> bool(P[0, 0] > P[0, 1])
    True
    """

    def __init__(self, num_states: int):
        if int(num_states) != num_states or num_states < 2:
            raise InvalidDimensionError(
                f"A substitution model needs at least 2 states, got {num_states}"
            )
        self.num_states = int(num_states)
        self.name = "JC"
        self.full_name = "JC (Jukes and Cantor, 1969)"
        self.freq_type = StateFreqType.EQUAL
        self._state_freq = np.full(self.num_states, 1.0 / self.num_states)
        self.likelihood_function: Optional[Callable[[], float]] = None
        self.last_optimization = None

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    @property
    def state_freq(self) -> np.ndarray:
        """Stationary state frequencies."""
        return self._state_freq

    def get_ndim(self) -> int:
        """Number of free parameters."""
        return 0

    def is_reversible(self) -> bool:
        return True

    def is_site_specific_model(self) -> bool:
        return False

    def get_num_models(self) -> int:
        """Number of sub-models addressable through ``model_id``."""
        return 1

    def get_ptn_model_id(self, ptn: int) -> int:
        """Sub-model ID used for alignment pattern ``ptn``."""
        if ptn < 0:
            raise InvalidDimensionError(f"Pattern index must be non-negative, got {ptn}")
        return 0

    def get_num_rate_entries(self) -> int:
        """Number of entries in the upper triangle of the rate matrix."""
        return num_rate_entries(self.num_states)

    def get_trans_matrix_size(self) -> int:
        """Number of values in a transition matrix returned without ``model_id``."""
        return self.num_states * self.num_states

    def new_trans_matrix(self) -> np.ndarray:
        """Allocate a zeroed transition matrix."""
        return np.zeros((self.num_states, self.num_states))

    def _check_model_id(self, model_id: Optional[int]) -> None:
        if model_id is not None and not 0 <= model_id < self.get_num_models():
            raise InvalidDimensionError(
                f"model_id {model_id} out of range for {self.get_num_models()} model(s)"
            )

    # ------------------------------------------------------------------
    # Transition probabilities
    # ------------------------------------------------------------------

    def compute_trans_matrix(self, time: float, model_id: Optional[int] = None) -> np.ndarray:
        """
        Compute the transition probability matrix.

        Parameters
        ----------
        time : float
            Branch length (expected substitutions per site), >= 0
        model_id : int, optional
            Sub-model ID for partitioned or site-specific models

        Returns
        -------
        ndarray, shape (num_states, num_states)
            P[i, j] = probability of state j after ``time`` starting from i
        """
        self._check_model_id(model_id)
        return closed_form_trans_matrix(time, self.state_freq)

    def compute_trans_matrix_freq(self, time: float, model_id: Optional[int] = None) -> np.ndarray:
        """Transition matrix with row i multiplied by the frequency of state i."""
        P = self.compute_trans_matrix(time, model_id=model_id)
        return P * self.get_state_frequency(model_id)[:, np.newaxis]

    def compute_trans(
        self, time: float, state1: int, state2: int, model_id: Optional[int] = None
    ) -> float:
        """Transition probability from ``state1`` to ``state2``."""
        self._check_model_id(model_id)
        return closed_form_trans(time, self.state_freq, state1, state2)

    def compute_trans_with_derv(
        self, time: float, state1: int, state2: int, model_id: Optional[int] = None
    ) -> tuple[float, float, float]:
        """
        Transition probability with its 1st and 2nd derivatives in time.

        Returns
        -------
        tuple
            (probability, first derivative, second derivative)
        """
        self._check_model_id(model_id)
        return closed_form_trans_entry_derv(time, self.state_freq, state1, state2)

    def compute_trans_derv(
        self, time: float, model_id: Optional[int] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Transition matrix with its 1st and 2nd derivatives in time.

        Returns
        -------
        tuple of ndarray
            (P, dP/dt, d2P/dt2)
        """
        self._check_model_id(model_id)
        return closed_form_trans_derv(time, self.state_freq)

    def compute_trans_derv_freq(
        self, time: float, rate_val: float = 1.0, model_id: Optional[int] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Derivative matrices at ``time * rate_val``, weighted by state frequency.

        The derivatives are taken with respect to ``time``, so the first is
        scaled by ``rate_val`` and the second by ``rate_val**2``. Row i of
        each matrix is multiplied by the frequency of state i.
        """
        P, dP, d2P = self.compute_trans_derv(time * rate_val, model_id=model_id)
        freq = self.get_state_frequency(model_id)[:, np.newaxis]
        return P * freq, dP * (freq * rate_val), d2P * (freq * rate_val * rate_val)

    def compute_pattern_trans(self, time: float, ptn: int, state1: int, state2: int) -> float:
        """Transition probability under the sub-model assigned to pattern ``ptn``."""
        return self.compute_trans(time, state1, state2, model_id=self.get_ptn_model_id(ptn))

    def compute_pattern_trans_with_derv(
        self, time: float, ptn: int, state1: int, state2: int
    ) -> tuple[float, float, float]:
        """Derivative variant of :meth:`compute_pattern_trans`."""
        return self.compute_trans_with_derv(
            time, state1, state2, model_id=self.get_ptn_model_id(ptn)
        )

    # ------------------------------------------------------------------
    # Rate matrix and frequencies
    # ------------------------------------------------------------------

    def get_rate_matrix(self, model_id: Optional[int] = None) -> np.ndarray:
        """Upper-triangle exchangeabilities, length num_states*(num_states-1)/2."""
        self._check_model_id(model_id)
        return np.ones(self.get_num_rate_entries())

    def get_q_matrix(self, model_id: Optional[int] = None) -> np.ndarray:
        """Normalized rate matrix Q."""
        return create_reversible_Q(
            self.get_rate_matrix(model_id), self.get_state_frequency(model_id)
        )

    def get_state_frequency(self, model_id: Optional[int] = None) -> np.ndarray:
        """Copy of the state frequency vector."""
        self._check_model_id(model_id)
        return self.state_freq.copy()

    def get_freq_type(self) -> StateFreqType:
        return self.freq_type

    def decompose_rate_matrix(self) -> None:
        """Eigendecompose the rate matrix. Closed-form models have nothing to do."""

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def get_variables(self) -> np.ndarray:
        """
        Pack the free parameters into a vector indexed from 1.

        Returns
        -------
        ndarray, shape (get_ndim() + 1,)
            ``variables[0]`` is unused
        """
        return new_variables(self.get_ndim())

    def set_variables(self, variables: np.ndarray) -> bool:
        """
        Assign the free parameters from a vector indexed from 1.

        Returns
        -------
        bool
            True if any value had to be clamped into its bounds
        """
        check_variables(variables, self.get_ndim())
        return False

    def get_variable_bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """Lower and upper bounds, 1-indexed like the parameter vector."""
        ndim = self.get_ndim()
        return new_variables(ndim), new_variables(ndim)

    def set_likelihood_function(self, log_likelihood: Callable[[], float]) -> None:
        """Set the callback used by :meth:`optimize_parameters`."""
        self.likelihood_function = log_likelihood

    def optimize_parameters(
        self,
        epsilon: float = 0.001,
        log_likelihood: Optional[Callable[[], float]] = None,
        **kwargs,
    ) -> float:
        """
        Optimize model parameters by maximum likelihood.

        Parameters
        ----------
        epsilon : float
            Stop when a round of optimization improves the log-likelihood by
            less than this
        log_likelihood : callable, optional
            Zero-argument callable returning the log-likelihood under the
            current parameters. Defaults to ``likelihood_function``.
        **kwargs
            Passed to :class:`~phylosubst.optimize.optimizer.ModelOptimizer`
            (``method``, ``maxiter``, ``max_rounds``, ``verbose``)

        Returns
        -------
        float
            Best log-likelihood. Models without parameters return the current
            log-likelihood, or 0.0 when no callback is available.
        """
        callback = log_likelihood if log_likelihood is not None else self.likelihood_function

        if self.get_ndim() == 0:
            return float(callback()) if callback is not None else 0.0
        if callback is None:
            raise ValueError(
                f"Model {self.name} has {self.get_ndim()} parameters but no "
                "log-likelihood function to optimize them against"
            )

        from ..optimize.optimizer import ModelOptimizer

        optimizer = ModelOptimizer(self, callback, **kwargs)
        self.last_optimization = optimizer.optimize(epsilon=epsilon)
        return self.last_optimization.log_likelihood

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def describe(self) -> str:
        """Human-readable dump of rates, frequencies and Q."""
        lines = [
            f"Model: {self.full_name}",
            f"States: {self.num_states}",
            f"Frequency type: {self.freq_type.value}",
            f"Free parameters: {self.get_ndim()}",
            "State frequencies: " + " ".join(f"{f:.5f}" for f in self.get_state_frequency()),
            "Rates: " + " ".join(f"{r:.5f}" for r in self.get_rate_matrix()),
            "Rate matrix Q:",
        ]
        for row in self.get_q_matrix():
            lines.append("  " + " ".join(f"{q:10.5f}" for q in row))
        return "\n".join(lines)

    def write_info(self, out: Optional[TextIO] = None) -> None:
        """Write :meth:`describe` output to ``out`` (default stdout)."""
        print(self.describe(), file=out if out is not None else sys.stdout)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, num_states={self.num_states})"
