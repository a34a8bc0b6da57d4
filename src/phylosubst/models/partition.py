"""
Partitioned substitution model.

Alignment patterns are split into partitions, each evaluated under its own
substitution model. Every per-entry query is dispatched through a sub-model
ID, obtained for a pattern with :meth:`PartitionModel.get_ptn_model_id`.
"""

from typing import Optional, Sequence

import numpy as np

from ..errors import InvalidDimensionError
from ..optimize.parameters import check_variables, new_variables
from .base import ModelSubst, StateFreqType


class PartitionModel(ModelSubst):
    """
    Collection of independent sub-models with a pattern-to-model map.

    Parameters
    ----------
    models : sequence of ModelSubst
        Sub-models, addressed by their index. All must have the same number
        of states.
    pattern_model_ids : sequence of int
        Sub-model index for each alignment pattern

    Notes
    -----
    Calls without ``model_id`` use sub-model 0. The parameter vector is the
    concatenation of the sub-models' vectors, in sub-model order.

    Examples
    --------
    >>> from phylosubst.models import DNAModel
    >>> model = PartitionModel([DNAModel("JC"), DNAModel("K80", rates=[1, 4, 1, 1, 4, 1])], [0, 1, 1])
    >>> model.get_ptn_model_id(2)
    1
    """

    def __init__(self, models: Sequence[ModelSubst], pattern_model_ids: Sequence[int]):
        if len(models) == 0:
            raise InvalidDimensionError("A partition model needs at least one sub-model")
        num_states = models[0].num_states
        for i, model in enumerate(models):
            if model.num_states != num_states:
                raise InvalidDimensionError(
                    f"Sub-model {i} has {model.num_states} states, expected {num_states}"
                )

        super().__init__(num_states)
        self.models = list(models)
        self.pattern_model_ids = np.asarray(pattern_model_ids, dtype=int)
        if self.pattern_model_ids.ndim != 1:
            raise InvalidDimensionError("pattern_model_ids must be one-dimensional")
        if np.any(self.pattern_model_ids < 0) or np.any(self.pattern_model_ids >= len(self.models)):
            raise InvalidDimensionError(
                f"pattern_model_ids must lie in [0, {len(self.models) - 1}]"
            )

        self.name = "+".join(m.name for m in self.models)
        self.full_name = f"Partition model ({len(self.models)} partitions: {self.name})"
        self.freq_type = self.models[0].get_freq_type()

    def _model(self, model_id: Optional[int]) -> ModelSubst:
        self._check_model_id(model_id)
        return self.models[0 if model_id is None else model_id]

    @property
    def state_freq(self) -> np.ndarray:
        return self.models[0].state_freq

    def get_num_models(self) -> int:
        return len(self.models)

    def get_ptn_model_id(self, ptn: int) -> int:
        if not 0 <= ptn < len(self.pattern_model_ids):
            raise InvalidDimensionError(
                f"Pattern {ptn} out of range [0, {len(self.pattern_model_ids) - 1}]"
            )
        return int(self.pattern_model_ids[ptn])

    def get_freq_type(self, model_id: Optional[int] = None) -> StateFreqType:
        return self._model(model_id).get_freq_type()

    def is_reversible(self) -> bool:
        return all(m.is_reversible() for m in self.models)

    # ------------------------------------------------------------------
    # Dispatch to sub-models
    # ------------------------------------------------------------------

    def compute_trans_matrix(self, time: float, model_id: Optional[int] = None) -> np.ndarray:
        return self._model(model_id).compute_trans_matrix(time)

    def compute_trans(
        self, time: float, state1: int, state2: int, model_id: Optional[int] = None
    ) -> float:
        return self._model(model_id).compute_trans(time, state1, state2)

    def compute_trans_with_derv(
        self, time: float, state1: int, state2: int, model_id: Optional[int] = None
    ) -> tuple[float, float, float]:
        return self._model(model_id).compute_trans_with_derv(time, state1, state2)

    def compute_trans_derv(
        self, time: float, model_id: Optional[int] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self._model(model_id).compute_trans_derv(time)

    def get_rate_matrix(self, model_id: Optional[int] = None) -> np.ndarray:
        return self._model(model_id).get_rate_matrix()

    def get_q_matrix(self, model_id: Optional[int] = None) -> np.ndarray:
        return self._model(model_id).get_q_matrix()

    def get_state_frequency(self, model_id: Optional[int] = None) -> np.ndarray:
        return self._model(model_id).get_state_frequency()

    def decompose_rate_matrix(self) -> None:
        for model in self.models:
            model.decompose_rate_matrix()

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def get_ndim(self) -> int:
        return sum(m.get_ndim() for m in self.models)

    def _slices(self):
        start = 1
        for model in self.models:
            ndim = model.get_ndim()
            yield model, slice(start, start + ndim)
            start += ndim

    def get_variables(self) -> np.ndarray:
        variables = new_variables(self.get_ndim())
        for model, sl in self._slices():
            variables[sl] = model.get_variables()[1:]
        return variables

    def set_variables(self, variables: np.ndarray) -> bool:
        variables = check_variables(variables, self.get_ndim())
        clamped = False
        for model, sl in self._slices():
            sub = new_variables(model.get_ndim())
            sub[1:] = variables[sl]
            clamped = model.set_variables(sub) or clamped
        return clamped

    def get_variable_bounds(self) -> tuple[np.ndarray, np.ndarray]:
        lower, upper = new_variables(self.get_ndim()), new_variables(self.get_ndim())
        for model, sl in self._slices():
            sub_lower, sub_upper = model.get_variable_bounds()
            lower[sl], upper[sl] = sub_lower[1:], sub_upper[1:]
        return lower, upper

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def describe(self) -> str:
        counts = np.bincount(self.pattern_model_ids, minlength=len(self.models))
        lines = [f"Model: {self.full_name}", f"Patterns: {len(self.pattern_model_ids)}"]
        for i, model in enumerate(self.models):
            lines.append(f"--- Partition {i} ({counts[i]} patterns) ---")
            lines.append(model.describe())
        return "\n".join(lines)
