"""
Site-specific frequency model.

Each alignment pattern is assigned one of several state frequency profiles.
All profiles share the same exchangeabilities, so there is one set of rate
parameters but one rate matrix (and eigendecomposition) per profile.
"""

from typing import Optional, Sequence

import numpy as np

from ..errors import InvalidDimensionError
from ..optimize.parameters import check_variables
from .base import StateFreqType
from .gtr import GTRModel
from .partition import PartitionModel


class SiteSpecificModel(PartitionModel):
    """
    Shared-rate model with per-pattern frequency profiles.

    Parameters
    ----------
    rates : sequence of float, optional
        Upper-triangle exchangeabilities shared by all profiles
    frequency_profiles : array-like, shape (n_profiles, num_states)
        One frequency vector per profile
    pattern_profile_ids : sequence of int
        Profile index for each alignment pattern
    rate_constraint : sequence of int, optional
        Tied rate entries, as for :class:`GTRModel`
    closed_form : bool, default=True
        Passed to each profile's :class:`GTRModel`

    Notes
    -----
    Without ``model_id``, :meth:`compute_trans_matrix` and
    :meth:`compute_trans_derv` return arrays stacked over profiles with shape
    (n_profiles, num_states, num_states); per-entry queries use profile 0.
    """

    def __init__(
        self,
        frequency_profiles: np.ndarray,
        pattern_profile_ids: Sequence[int],
        rates: Optional[Sequence[float]] = None,
        rate_constraint: Optional[Sequence[int]] = None,
        closed_form: bool = True,
    ):
        profiles = np.asarray(frequency_profiles, dtype=float)
        if profiles.ndim != 2 or profiles.shape[0] == 0:
            raise InvalidDimensionError(
                f"frequency_profiles must have shape (n_profiles, num_states), got {profiles.shape}"
            )
        num_states = profiles.shape[1]

        models = [
            GTRModel(
                num_states,
                rates=rates,
                frequencies=profile,
                freq_type=StateFreqType.USER_DEFINED,
                rate_constraint=rate_constraint,
                closed_form=closed_form,
                name=f"SSF{i}",
            )
            for i, profile in enumerate(profiles)
        ]
        super().__init__(models, pattern_profile_ids)
        self.name = "SSF"
        self.full_name = f"Site-specific frequency model ({len(models)} profiles, {num_states} states)"
        self.freq_type = StateFreqType.USER_DEFINED

    @property
    def state_freq(self) -> np.ndarray:
        """Mean of the profiles, weighted by the number of patterns using each."""
        counts = np.bincount(self.pattern_model_ids, minlength=len(self.models)).astype(float)
        if counts.sum() == 0:
            counts[:] = 1.0
        profiles = np.array([m.state_freq for m in self.models])
        return counts @ profiles / counts.sum()

    def is_site_specific_model(self) -> bool:
        return True

    def get_trans_matrix_size(self) -> int:
        return len(self.models) * self.num_states * self.num_states

    def new_trans_matrix(self) -> np.ndarray:
        return np.zeros((len(self.models), self.num_states, self.num_states))

    def get_state_frequency(self, model_id: Optional[int] = None) -> np.ndarray:
        if model_id is None:
            return self.state_freq.copy()
        return super().get_state_frequency(model_id)

    def compute_trans_matrix(self, time: float, model_id: Optional[int] = None) -> np.ndarray:
        if model_id is None:
            return np.stack([m.compute_trans_matrix(time) for m in self.models])
        return super().compute_trans_matrix(time, model_id=model_id)

    def compute_trans_matrix_freq(self, time: float, model_id: Optional[int] = None) -> np.ndarray:
        if model_id is None:
            return np.stack([m.compute_trans_matrix_freq(time) for m in self.models])
        return super().compute_trans_matrix_freq(time, model_id=model_id)

    def compute_trans_derv(
        self, time: float, model_id: Optional[int] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if model_id is None:
            P, dP, d2P = zip(*(m.compute_trans_derv(time) for m in self.models))
            return np.stack(P), np.stack(dP), np.stack(d2P)
        return super().compute_trans_derv(time, model_id=model_id)

    def compute_trans_derv_freq(
        self, time: float, rate_val: float = 1.0, model_id: Optional[int] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if model_id is None:
            P, dP, d2P = zip(*(m.compute_trans_derv_freq(time, rate_val) for m in self.models))
            return np.stack(P), np.stack(dP), np.stack(d2P)
        return super().compute_trans_derv_freq(time, rate_val, model_id=model_id)

    # ------------------------------------------------------------------
    # Parameters: the shared rates only
    # ------------------------------------------------------------------

    def get_ndim(self) -> int:
        return self.models[0].get_ndim()

    def get_variables(self) -> np.ndarray:
        return self.models[0].get_variables()

    def set_variables(self, variables: np.ndarray) -> bool:
        variables = check_variables(variables, self.get_ndim())
        clamped = False
        for model in self.models:
            clamped = model.set_variables(variables) or clamped
        return clamped

    def get_variable_bounds(self) -> tuple[np.ndarray, np.ndarray]:
        return self.models[0].get_variable_bounds()

    def describe(self) -> str:
        lines = [
            f"Model: {self.full_name}",
            f"Patterns: {len(self.pattern_model_ids)}",
            "Rates: " + " ".join(f"{r:.5f}" for r in self.models[0].get_rate_matrix()),
            "Frequency profiles:",
        ]
        for i, model in enumerate(self.models):
            lines.append(f"  {i}: " + " ".join(f"{f:.5f}" for f in model.state_freq))
        return "\n".join(lines)
