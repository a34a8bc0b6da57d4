"""
General time-reversible (GTR) substitution model over any number of states.
"""

import warnings
from typing import Optional, Sequence

import numpy as np

from ..core.matrix import (
    EigenDecomposition,
    check_row_sums,
    create_reversible_Q,
    eigen_decompose_rev,
)
from ..core.transition import (
    closed_form_trans,
    closed_form_trans_derv,
    closed_form_trans_entry_derv,
    closed_form_trans_matrix,
    compute_trans,
    compute_trans_derv,
    compute_trans_entry_derv,
    compute_trans_matrix,
)
from ..errors import InvalidDimensionError, NumericalError
from ..optimize.parameters import (
    MAX_FREQ_RATIO,
    MAX_RATE,
    MIN_FREQ_RATIO,
    MIN_RATE,
    check_variables,
    clamp,
    frequencies_to_ratios,
    new_variables,
    normalize_frequencies,
    ratios_to_frequencies,
)
from .base import ModelSubst, StateFreqType


def compute_state_frequencies(counts: np.ndarray, pseudocount: float = 0.0) -> np.ndarray:
    """
    Empirical state frequencies from observed state counts.

    Parameters
    ----------
    counts : np.ndarray, shape (num_states,)
        Number of times each state was observed
    pseudocount : float
        Added to every count so unobserved states keep a positive frequency

    Returns
    -------
    np.ndarray
        Frequencies summing to 1
    """
    counts = np.asarray(counts, dtype=float) + pseudocount
    if np.any(counts < 0) or counts.sum() <= 0:
        raise ValueError(f"State counts must be non-negative with a positive total, got {counts}")
    if np.any(counts == 0):
        raise ValueError(
            "Some states were never observed; use a pseudocount to keep frequencies positive"
        )
    return counts / counts.sum()


class GTRModel(ModelSubst):
    """
    General time-reversible model.

    Q[i,j] = r[i,j] * pi_j for i != j, normalized to one expected substitution
    per unit time. Rate entries can be tied together with a constraint
    pattern; tied entries share a single free parameter.

    Parameters
    ----------
    num_states : int
        Number of states
    rates : array-like, optional
        Upper-triangle exchangeabilities, length num_states*(num_states-1)/2.
        Default all 1.
    frequencies : array-like, optional
        State frequencies. Required for EMPIRICAL and USER_DEFINED frequency
        types; start values for OPTIMIZED.
    freq_type : StateFreqType, optional
        Defaults to EQUAL without ``frequencies``, USER_DEFINED with them
    rate_constraint : sequence of int, optional
        Group code for each rate entry; entries with equal codes share one
        value. The group of the last entry is the reference, fixed to 1.
        Default: every entry free except the last.
    closed_form : bool, default=True
        Evaluate in closed form when all exchangeabilities are equal
    name : str
        Short model name
    full_name : str, optional
        Descriptive model name

    Examples
    --------
    >>> model = GTRModel(4, rates=[1, 2, 1, 1, 2, 1], frequencies=[0.1, 0.2, 0.3, 0.4])
    >>> model.get_ndim()
    5
    """

    def __init__(
        self,
        num_states: int,
        rates: Optional[Sequence[float]] = None,
        frequencies: Optional[Sequence[float]] = None,
        freq_type: Optional[StateFreqType] = None,
        rate_constraint: Optional[Sequence[int]] = None,
        closed_form: bool = True,
        name: str = "GTR",
        full_name: Optional[str] = None,
    ):
        super().__init__(num_states)
        self.name = name
        self.full_name = full_name or f"{name} (general time-reversible, {self.num_states} states)"
        self.closed_form = closed_form
        self._Q: Optional[np.ndarray] = None
        self._eigen: Optional[EigenDecomposition] = None

        n_rates = self.get_num_rate_entries()
        if rate_constraint is None:
            rate_constraint = list(range(n_rates))
        rate_constraint = [int(c) for c in rate_constraint]
        if len(rate_constraint) != n_rates:
            raise InvalidDimensionError(
                f"Rate constraint must have {n_rates} entries, got {len(rate_constraint)}"
            )
        self.rate_constraint = tuple(rate_constraint)

        # Rate groups in order of first appearance; the reference group is
        # the one holding the last entry
        codes = list(dict.fromkeys(self.rate_constraint))
        reference = self.rate_constraint[-1]
        self._rate_groups = [
            np.flatnonzero(np.array(self.rate_constraint) == code)
            for code in codes if code != reference
        ]
        self._reference_group = np.flatnonzero(np.array(self.rate_constraint) == reference)

        self.freq_type = self._resolve_freq_type(freq_type, frequencies)
        state_freq = self._state_freq
        if frequencies is not None and self.freq_type != StateFreqType.EQUAL:
            state_freq = normalize_frequencies(frequencies, self.num_states)

        if rates is None:
            rates = np.ones(n_rates)
        self._assign(self._project_rates(rates), state_freq)

    @staticmethod
    def _resolve_freq_type(freq_type, frequencies) -> StateFreqType:
        if freq_type is None:
            return StateFreqType.EQUAL if frequencies is None else StateFreqType.USER_DEFINED
        freq_type = StateFreqType(freq_type)
        if freq_type == StateFreqType.EQUAL and frequencies is not None:
            raise ValueError("Equal state frequencies cannot be combined with given frequencies")
        if freq_type in (StateFreqType.EMPIRICAL, StateFreqType.USER_DEFINED) and frequencies is None:
            raise ValueError(f"Frequency type '{freq_type.value}' requires state frequencies")
        return freq_type

    def _project_rates(self, rates: Sequence[float]) -> np.ndarray:
        """Apply the rate constraint and scale the reference group to 1."""
        rates = np.asarray(rates, dtype=float)
        if rates.shape != (self.get_num_rate_entries(),):
            raise InvalidDimensionError(
                f"Expected {self.get_num_rate_entries()} rates, got {rates.size}"
            )
        if not np.all(np.isfinite(rates)) or np.any(rates <= 0):
            raise ValueError(f"Rates must be positive and finite, got {rates}")

        projected = np.empty_like(rates)
        for group in self._rate_groups + [self._reference_group]:
            projected[group] = rates[group].mean()
        return projected / projected[self._reference_group[0]]

    def _clamp_to_bounds(
        self, rates: np.ndarray, state_freq: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray, bool]:
        """
        Clamp free rates and optimized frequency ratios into the bounds used
        by :meth:`set_variables`.

        Returns
        -------
        tuple
            (rates, state frequencies, whether any value was moved)
        """
        rates = rates.copy()
        clamped = False
        for group in self._rate_groups:
            rates[group], moved = clamp(rates[group], MIN_RATE, MAX_RATE)
            clamped = clamped or moved

        if self.n_freq_params:
            ratios, moved = clamp(
                frequencies_to_ratios(state_freq), MIN_FREQ_RATIO, MAX_FREQ_RATIO
            )
            if moved:
                state_freq = ratios_to_frequencies(ratios)
                clamped = True
        return rates, state_freq, clamped

    def _assign(self, rates: np.ndarray, state_freq: np.ndarray) -> None:
        """Store user-supplied rates and frequencies, clamped into the parameter domain."""
        rates, state_freq, clamped = self._clamp_to_bounds(rates, state_freq)
        if clamped:
            warnings.warn(
                f"{self.name}: values outside the parameter bounds were clamped "
                f"(rates to [{MIN_RATE}, {MAX_RATE}], frequency ratios to "
                f"[{MIN_FREQ_RATIO}, {MAX_FREQ_RATIO}])",
                stacklevel=3,
            )
        self._commit(rates, state_freq)

    def _decompose(
        self, rates: np.ndarray, state_freq: np.ndarray
    ) -> tuple[np.ndarray, EigenDecomposition]:
        Q = create_reversible_Q(rates, state_freq)
        if not check_row_sums(Q):
            raise NumericalError("Rate matrix rows do not sum to zero")
        return Q, eigen_decompose_rev(Q, state_freq)

    def _commit(self, rates: np.ndarray, state_freq: np.ndarray) -> None:
        # The model only changes once the new Q has been decomposed
        Q, eigen = self._decompose(rates, state_freq)
        self.rates = rates
        self._state_freq = state_freq
        self._Q = Q
        self._eigen = eigen

    @classmethod
    def poisson(cls, num_states: int = 20, frequencies: Optional[Sequence[float]] = None) -> "GTRModel":
        """Equal-rate model, e.g. the Poisson model for amino acids."""
        return cls(
            num_states,
            frequencies=frequencies,
            freq_type=None if frequencies is None else StateFreqType.EMPIRICAL,
            rate_constraint=[0] * (num_states * (num_states - 1) // 2),
            name="Poisson",
            full_name=f"Poisson (equal rates, {num_states} states)",
        )

    # ------------------------------------------------------------------
    # Rate matrix
    # ------------------------------------------------------------------

    @property
    def eigen(self) -> EigenDecomposition:
        """Current eigendecomposition of Q."""
        return self._eigen

    def uses_closed_form(self) -> bool:
        """True when P(t) is evaluated without the eigendecomposition."""
        return self.closed_form and bool(np.all(self.rates == self.rates[0]))

    def decompose_rate_matrix(self) -> None:
        """
        Rebuild and eigendecompose Q from the current rates and frequencies.

        Raises
        ------
        NumericalError
            If Q rows do not sum to zero or the decomposition fails
        NonReversibleMatrixError
            If Q violates detailed balance
        """
        self._Q, self._eigen = self._decompose(self.rates, self.state_freq)

    def set_rates(self, rates: Sequence[float]) -> None:
        """
        Replace the exchangeabilities and re-decompose Q.

        Free rates outside [MIN_RATE, MAX_RATE] are clamped with a warning.
        """
        self._assign(self._project_rates(rates), self.state_freq)

    def set_state_frequency(self, frequencies: Sequence[float]) -> None:
        """
        Replace the state frequencies and re-decompose Q.

        For OPTIMIZED frequencies, ratios outside [MIN_FREQ_RATIO, MAX_FREQ_RATIO]
        are clamped with a warning.
        """
        if self.freq_type == StateFreqType.EQUAL:
            raise ValueError("Cannot set frequencies of a model with equal state frequencies")
        self._assign(self.rates, normalize_frequencies(frequencies, self.num_states))

    def get_rate_matrix(self, model_id: Optional[int] = None) -> np.ndarray:
        self._check_model_id(model_id)
        return self.rates.copy()

    def get_q_matrix(self, model_id: Optional[int] = None) -> np.ndarray:
        self._check_model_id(model_id)
        return self._Q.copy()

    # ------------------------------------------------------------------
    # Transition probabilities
    # ------------------------------------------------------------------

    def compute_trans_matrix(self, time: float, model_id: Optional[int] = None) -> np.ndarray:
        self._check_model_id(model_id)
        if self.uses_closed_form():
            return closed_form_trans_matrix(time, self.state_freq)
        return compute_trans_matrix(time, self._eigen)

    def compute_trans(
        self, time: float, state1: int, state2: int, model_id: Optional[int] = None
    ) -> float:
        self._check_model_id(model_id)
        if self.uses_closed_form():
            return closed_form_trans(time, self.state_freq, state1, state2)
        return compute_trans(time, self._eigen, state1, state2)

    def compute_trans_with_derv(
        self, time: float, state1: int, state2: int, model_id: Optional[int] = None
    ) -> tuple[float, float, float]:
        self._check_model_id(model_id)
        if self.uses_closed_form():
            return closed_form_trans_entry_derv(time, self.state_freq, state1, state2)
        return compute_trans_entry_derv(time, self._eigen, state1, state2)

    def compute_trans_derv(
        self, time: float, model_id: Optional[int] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        self._check_model_id(model_id)
        if self.uses_closed_form():
            return closed_form_trans_derv(time, self.state_freq)
        return compute_trans_derv(time, self._eigen)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def n_rate_params(self) -> int:
        return len(self._rate_groups)

    @property
    def n_freq_params(self) -> int:
        return self.num_states - 1 if self.freq_type == StateFreqType.OPTIMIZED else 0

    def get_ndim(self) -> int:
        return self.n_rate_params + self.n_freq_params

    def get_variables(self) -> np.ndarray:
        """
        Pack parameters: free rate groups, then frequency ratios pi_i / pi_last.

        Returns
        -------
        np.ndarray
            1-indexed parameter vector
        """
        variables = new_variables(self.get_ndim())
        k = self.n_rate_params
        for i, group in enumerate(self._rate_groups):
            variables[1 + i] = self.rates[group[0]]
        if self.n_freq_params:
            variables[1 + k:] = frequencies_to_ratios(self.state_freq)
        return variables

    def set_variables(self, variables: np.ndarray) -> bool:
        """
        Unpack parameters and re-decompose Q.

        Rates outside [MIN_RATE, MAX_RATE] and frequency ratios outside
        [MIN_FREQ_RATIO, MAX_FREQ_RATIO] are clamped.

        Returns
        -------
        bool
            True if any value was clamped
        """
        variables = check_variables(variables, self.get_ndim())
        k = self.n_rate_params

        rate_values, rates_clamped = clamp(variables[1:1 + k], MIN_RATE, MAX_RATE)
        rates = self.rates.copy()
        for value, group in zip(rate_values, self._rate_groups):
            rates[group] = value

        state_freq = self.state_freq
        freqs_clamped = False
        if self.n_freq_params:
            ratios, freqs_clamped = clamp(variables[1 + k:], MIN_FREQ_RATIO, MAX_FREQ_RATIO)
            state_freq = ratios_to_frequencies(ratios)

        self._commit(rates, state_freq)
        return rates_clamped or freqs_clamped

    def get_variable_bounds(self) -> tuple[np.ndarray, np.ndarray]:
        ndim = self.get_ndim()
        k = self.n_rate_params
        lower, upper = new_variables(ndim), new_variables(ndim)
        lower[1:1 + k], upper[1:1 + k] = MIN_RATE, MAX_RATE
        lower[1 + k:], upper[1 + k:] = MIN_FREQ_RATIO, MAX_FREQ_RATIO
        return lower, upper

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def describe(self) -> str:
        text = super().describe()
        path = "closed form" if self.uses_closed_form() else "eigendecomposition"
        eigenvalues = " ".join(f"{v:.5f}" for v in self._eigen.eigenvalues)
        return f"{text}\nEvaluation: {path}\nEigenvalues: {eigenvalues}"
