"""
Two-sequence likelihood under a substitution model.

This is the smallest likelihood engine a model can be optimized against: two
aligned state sequences separated by a single branch. Because the models are
reversible, the root can be placed at the first sequence, giving

    lnL(t) = sum_p w_p * log(pi_a * P_ab(t))

for each pattern p with states (a, b) and weight w_p. The derivatives in t
compose from the per-entry transition derivatives.
"""

from typing import Optional, Sequence

import numpy as np

from .models.base import ModelSubst

MIN_BRANCH_LENGTH = 1e-6
MAX_BRANCH_LENGTH = 10.0


class PairwiseLikelihood:
    """
    Likelihood of two aligned sequences separated by one branch.

    Parameters
    ----------
    model : ModelSubst
        Substitution model
    states1, states2 : sequence of int
        State index of each pattern in the two sequences
    weights : sequence of float, optional
        Pattern weights (counts); default 1 for every pattern
    pattern_ids : sequence of int, optional
        Pattern identifiers passed to ``model.get_ptn_model_id``;
        default 0, 1, ..., n_patterns - 1
    branch_length : float
        Distance between the sequences

    Examples
    --------
    >>> model = ModelSubst(4)
    >>> lik = PairwiseLikelihood(model, [0, 1, 2, 3], [0, 1, 2, 0])
    >>> t, lnL = lik.optimize_branch_length()
    """

    def __init__(
        self,
        model: ModelSubst,
        states1: Sequence[int],
        states2: Sequence[int],
        weights: Optional[Sequence[float]] = None,
        pattern_ids: Optional[Sequence[int]] = None,
        branch_length: float = 0.1,
    ):
        self.model = model
        self.states1 = np.asarray(states1, dtype=int)
        self.states2 = np.asarray(states2, dtype=int)
        if self.states1.shape != self.states2.shape or self.states1.ndim != 1:
            raise ValueError(
                f"Sequences must be one-dimensional with equal length, got "
                f"{self.states1.shape} and {self.states2.shape}"
            )
        n_patterns = len(self.states1)

        for states in (self.states1, self.states2):
            if np.any(states < 0) or np.any(states >= model.num_states):
                raise ValueError(f"States must lie in [0, {model.num_states - 1}]")

        if weights is None:
            self.weights = np.ones(n_patterns)
        else:
            self.weights = np.asarray(weights, dtype=float)
            if self.weights.shape != (n_patterns,):
                raise ValueError(f"Expected {n_patterns} weights, got {self.weights.size}")

        if pattern_ids is None:
            pattern_ids = np.arange(n_patterns)
        pattern_ids = np.asarray(pattern_ids, dtype=int)
        if pattern_ids.shape != (n_patterns,):
            raise ValueError(f"Expected {n_patterns} pattern ids, got {pattern_ids.size}")
        self.pattern_ids = pattern_ids

        # Sub-model of every pattern, fixed for the lifetime of the calculator
        self.model_ids = np.array([model.get_ptn_model_id(p) for p in pattern_ids], dtype=int)
        self.branch_length = float(branch_length)

    @classmethod
    def from_sequences(
        cls, model: ModelSubst, seq1: str, seq2: str, alphabet: str, **kwargs
    ) -> "PairwiseLikelihood":
        """
        Build from two aligned strings, compressing identical site pairs.

        Sites where either sequence has a character outside ``alphabet`` are
        skipped.
        """
        if len(seq1) != len(seq2):
            raise ValueError(f"Sequences differ in length: {len(seq1)} vs {len(seq2)}")
        index = {c: i for i, c in enumerate(alphabet)}
        pairs = {}
        for a, b in zip(seq1.upper(), seq2.upper()):
            if a in index and b in index:
                key = (index[a], index[b])
                pairs[key] = pairs.get(key, 0) + 1
        if not pairs:
            raise ValueError("No comparable sites between the two sequences")
        states1, states2 = zip(*pairs)
        return cls(model, states1, states2, weights=list(pairs.values()), **kwargs)

    def _groups(self):
        for model_id in np.unique(self.model_ids):
            yield int(model_id), self.model_ids == model_id

    def log_likelihood(self, branch_length: Optional[float] = None) -> float:
        """
        Log-likelihood at ``branch_length`` (default: the stored branch length).
        """
        t = self.branch_length if branch_length is None else branch_length
        total = 0.0
        for model_id, mask in self._groups():
            P = self.model.compute_trans_matrix(t, model_id=model_id)
            pi = self.model.get_state_frequency(model_id=model_id)
            a, b = self.states1[mask], self.states2[mask]
            with np.errstate(divide="ignore"):
                total += float(np.dot(self.weights[mask], np.log(pi[a] * P[a, b])))
        return total

    def log_likelihood_derv(self, branch_length: Optional[float] = None) -> tuple[float, float, float]:
        """
        Log-likelihood with its first and second derivatives in branch length.

        Returns
        -------
        tuple
            (lnL, dlnL/dt, d2lnL/dt2)
        """
        t = self.branch_length if branch_length is None else branch_length
        lnL = d1 = d2 = 0.0
        for model_id, mask in self._groups():
            P, dP, d2P = self.model.compute_trans_derv(t, model_id=model_id)
            pi = self.model.get_state_frequency(model_id=model_id)
            a, b = self.states1[mask], self.states2[mask]
            w = self.weights[mask]
            p = P[a, b]
            with np.errstate(divide="ignore", invalid="ignore"):
                lnL += float(np.dot(w, np.log(pi[a] * p)))
                ratio1 = dP[a, b] / p
                ratio2 = d2P[a, b] / p
            d1 += float(np.dot(w, ratio1))
            d2 += float(np.dot(w, ratio2 - ratio1 * ratio1))
        return lnL, d1, d2

    def optimize_branch_length(
        self, epsilon: float = 1e-8, max_iter: int = 100
    ) -> tuple[float, float]:
        """
        Maximize the likelihood over the branch length.

        Newton-Raphson steps on the first and second derivatives, falling
        back to bisection when a step leaves the current bracket or the
        curvature is not negative.

        Returns
        -------
        tuple
            (branch length, log-likelihood); the branch length is stored
        """
        lo, hi = MIN_BRANCH_LENGTH, MAX_BRANCH_LENGTH
        t = float(np.clip(self.branch_length, lo, hi))

        for _ in range(max_iter):
            _, d1, d2 = self.log_likelihood_derv(t)
            if not np.isfinite(d1):
                break
            if d1 > 0:
                lo = t
            else:
                hi = t

            if np.isfinite(d2) and d2 < 0:
                t_new = t - d1 / d2
            else:
                t_new = np.inf if d1 > 0 else -np.inf
            if not lo < t_new < hi:
                t_new = 0.5 * (lo + hi)

            converged = abs(t_new - t) < epsilon
            t = t_new
            if converged or hi - lo < epsilon:
                break

        self.branch_length = float(t)
        return self.branch_length, self.log_likelihood()

    def __call__(self) -> float:
        return self.log_likelihood()
