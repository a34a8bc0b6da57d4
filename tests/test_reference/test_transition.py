"""
Reference tests for transition probabilities and their derivatives.

Every model family is checked against the defining properties of P(t):
P(0) = I, stochastic rows, convergence to pi, and derivatives that agree
with finite differences.
"""

import numpy as np
import pytest
from phylosubst.core.matrix import create_reversible_Q, eigen_decompose_rev
from phylosubst.core.transition import (
    closed_form_beta,
    closed_form_trans_matrix,
    compute_trans_matrix,
    matrix_exponential,
)
from phylosubst.models import DNAModel, GTRModel, ModelSubst


class TestTransitionProperties:
    """Test properties every model's P(t) must satisfy."""

    def test_identity_at_zero(self, any_model):
        """Test that P(0) is exactly the identity."""
        P = any_model.compute_trans_matrix(0.0)
        np.testing.assert_array_equal(P, np.eye(any_model.num_states))

    @pytest.mark.parametrize("t", [1e-6, 0.01, 0.1, 1.0, 10.0])
    def test_rows_sum_to_one(self, any_model, t):
        """Test that P(t) is a stochastic matrix."""
        P = any_model.compute_trans_matrix(t)
        np.testing.assert_allclose(P.sum(axis=1), 1.0, atol=1e-10)
        assert np.all(P >= 0)
        assert np.all(P <= 1 + 1e-12)

    def test_stationary_limit(self, any_model):
        """Test that every row of P(t) approaches pi for large t."""
        P = any_model.compute_trans_matrix(1e6)
        pi = any_model.get_state_frequency()
        for row in P:
            np.testing.assert_allclose(row, pi, atol=1e-12)

    def test_semigroup(self, any_model):
        """Test P(t1 + t2) = P(t1) @ P(t2)."""
        P1 = any_model.compute_trans_matrix(0.2)
        P2 = any_model.compute_trans_matrix(0.3)
        P12 = any_model.compute_trans_matrix(0.5)
        np.testing.assert_allclose(P1 @ P2, P12, atol=1e-10)

    def test_matches_expm(self, any_model):
        """Test that P(t) agrees with expm(Q t)."""
        Q = any_model.get_q_matrix()
        for t in [0.05, 0.5, 2.0]:
            np.testing.assert_allclose(
                any_model.compute_trans_matrix(t), matrix_exponential(Q, t), atol=1e-10
            )

    def test_single_entry_matches_matrix(self, any_model):
        """Test that compute_trans equals the full-matrix entry."""
        t = 0.37
        P = any_model.compute_trans_matrix(t)
        n = any_model.num_states
        for i in range(n):
            for j in range(n):
                assert any_model.compute_trans(t, i, j) == pytest.approx(
                    P[i, j], rel=1e-12, abs=1e-13
                )

    def test_single_entry_at_zero(self, any_model):
        """Test that compute_trans(0, i, j) is exactly delta_ij."""
        assert any_model.compute_trans(0.0, 0, 0) == 1.0
        assert any_model.compute_trans(0.0, 0, 1) == 0.0

    def test_negative_time_rejected(self, any_model):
        """Test that negative branch lengths are rejected."""
        with pytest.raises(ValueError):
            any_model.compute_trans_matrix(-0.1)
        with pytest.raises(ValueError):
            any_model.compute_trans(-0.1, 0, 1)

    def test_frequency_weighted(self, any_model):
        """Test that row i of compute_trans_matrix_freq is pi_i * P[i]."""
        t = 0.2
        P = any_model.compute_trans_matrix(t)
        pi = any_model.get_state_frequency()
        PF = any_model.compute_trans_matrix_freq(t)

        np.testing.assert_allclose(PF, P * pi[:, np.newaxis], rtol=1e-14)
        assert PF.sum() == pytest.approx(1.0, abs=1e-10)


class TestDerivatives:
    """Test first and second time derivatives against finite differences."""

    @pytest.mark.parametrize("t", [0.05, 0.3, 2.0])
    def test_first_derivative(self, any_model, t):
        """Test dP/dt against a central difference."""
        h = 1e-5
        _, dP, _ = any_model.compute_trans_derv(t)
        numeric = (
            any_model.compute_trans_matrix(t + h) - any_model.compute_trans_matrix(t - h)
        ) / (2 * h)
        np.testing.assert_allclose(dP, numeric, atol=1e-6)

    @pytest.mark.parametrize("t", [0.05, 0.3, 2.0])
    def test_second_derivative(self, any_model, t):
        """Test d2P/dt2 against a central difference of dP/dt."""
        h = 1e-5
        _, _, d2P = any_model.compute_trans_derv(t)
        _, dP_plus, _ = any_model.compute_trans_derv(t + h)
        _, dP_minus, _ = any_model.compute_trans_derv(t - h)
        np.testing.assert_allclose(d2P, (dP_plus - dP_minus) / (2 * h), atol=1e-5)

    def test_derivative_at_zero_is_q(self, any_model):
        """Test that dP/dt at t = 0 is Q and d2P/dt2 is Q @ Q."""
        Q = any_model.get_q_matrix()
        P, dP, d2P = any_model.compute_trans_derv(0.0)

        np.testing.assert_array_equal(P, np.eye(any_model.num_states))
        np.testing.assert_allclose(dP, Q, atol=1e-10)
        np.testing.assert_allclose(d2P, Q @ Q, atol=1e-10)

    def test_derivative_rows_sum_to_zero(self, any_model):
        """Test that derivative matrices have zero row sums."""
        _, dP, d2P = any_model.compute_trans_derv(0.4)
        np.testing.assert_allclose(dP.sum(axis=1), 0.0, atol=1e-10)
        np.testing.assert_allclose(d2P.sum(axis=1), 0.0, atol=1e-10)

    def test_entry_derivatives_match_matrix(self, any_model):
        """Test that per-entry derivatives equal the matrix entries."""
        t = 0.25
        P, dP, d2P = any_model.compute_trans_derv(t)
        n = any_model.num_states
        for i in range(n):
            for j in range(n):
                p, d1, d2 = any_model.compute_trans_with_derv(t, i, j)
                assert p == pytest.approx(P[i, j], rel=1e-12, abs=1e-13)
                assert d1 == pytest.approx(dP[i, j], rel=1e-12, abs=1e-12)
                assert d2 == pytest.approx(d2P[i, j], rel=1e-12, abs=1e-12)

    def test_rate_scaled_frequency_derivatives(self, any_model):
        """Test compute_trans_derv_freq at a rate-scaled time."""
        t, rate = 0.2, 2.5
        pi = any_model.get_state_frequency()[:, np.newaxis]
        P, dP, d2P = any_model.compute_trans_derv(t * rate)
        PF, dPF, d2PF = any_model.compute_trans_derv_freq(t, rate_val=rate)

        np.testing.assert_allclose(PF, P * pi, rtol=1e-12)
        np.testing.assert_allclose(dPF, dP * pi * rate, rtol=1e-12, atol=1e-15)
        np.testing.assert_allclose(d2PF, d2P * pi * rate**2, rtol=1e-12, atol=1e-15)


class TestClosedForm:
    """Test the closed-form path for equal exchangeabilities."""

    def test_jc69_analytical(self):
        """Test JC69 against 1/4 + 3/4 exp(-4t/3)."""
        t = 0.1
        P = ModelSubst(4).compute_trans_matrix(t)
        e = np.exp(-4.0 * t / 3.0)

        np.testing.assert_allclose(np.diag(P), 0.25 + 0.75 * e, rtol=1e-12)
        np.testing.assert_allclose(P[0, 1], 0.25 - 0.25 * e, rtol=1e-12)

    def test_jc_shape(self):
        """Test that JC favors staying put at short times."""
        P = ModelSubst(4).compute_trans_matrix(0.1)
        off = P[~np.eye(4, dtype=bool)]

        assert np.all(np.diag(P) > off.max())
        assert np.all((P > 0) & (P < 1))

    def test_distance_to_stationarity_decreases(self):
        """Test that rows approach pi monotonically in total variation."""
        model = DNAModel("F81", frequencies=[0.1, 0.2, 0.3, 0.4])
        pi = model.get_state_frequency()

        distances = []
        for t in [0.1, 0.5, 1.0, 2.0, 5.0]:
            P = model.compute_trans_matrix(t)
            distances.append(0.5 * np.abs(P - pi).sum(axis=1).max())
        assert all(a > b for a, b in zip(distances, distances[1:]))

    def test_beta(self):
        """Test beta = 1 / (1 - sum(pi^2))."""
        pi = np.array([0.1, 0.2, 0.3, 0.4])
        assert closed_form_beta(pi) == pytest.approx(1.0 / 0.7)
        assert closed_form_beta(np.ones(4) / 4) == pytest.approx(4.0 / 3.0)

    @pytest.mark.parametrize("n", [2, 4, 20])
    def test_agrees_with_eigen_path(self, n):
        """Test that the closed form matches the eigendecomposition."""
        pi = np.random.RandomState(n).dirichlet(np.ones(n) * 3)
        closed = GTRModel(n, frequencies=pi)
        general = GTRModel(n, frequencies=pi, closed_form=False)

        assert closed.uses_closed_form()
        assert not general.uses_closed_form()
        for t in [0.0, 0.01, 0.3, 3.0]:
            np.testing.assert_allclose(
                closed.compute_trans_matrix(t), general.compute_trans_matrix(t), atol=1e-12
            )
            for a, b in zip(closed.compute_trans_derv(t), general.compute_trans_derv(t)):
                np.testing.assert_allclose(a, b, atol=1e-10)

    def test_binary_formula(self):
        """Test the two-state closed form P[0,1] = pi_1 (1 - exp(-beta t))."""
        pi = np.array([0.3, 0.7])
        t = 0.4
        P = closed_form_trans_matrix(t, pi)
        beta = 1.0 / (1.0 - 0.09 - 0.49)

        assert P[0, 1] == pytest.approx(0.7 * (1 - np.exp(-beta * t)))
        assert P[1, 0] == pytest.approx(0.3 * (1 - np.exp(-beta * t)))


class TestEigenPath:
    """Test transition matrices computed from a decomposition."""

    def test_zero_time_identity(self):
        """Test that the eigen path returns the identity at t = 0."""
        pi = np.array([0.1, 0.2, 0.3, 0.4])
        eig = eigen_decompose_rev(create_reversible_Q(np.arange(1.0, 7.0), pi), pi)
        np.testing.assert_array_equal(compute_trans_matrix(0.0, eig), np.eye(4))

    def test_transitions_exceed_transversions(self):
        """Test K80 with kappa > 1 favors transitions."""
        model = DNAModel("K80", rates=[1, 5, 1, 1, 5, 1])
        P = model.compute_trans_matrix(0.1)

        assert P[0, 2] > P[0, 1]  # A->G vs A->C
        assert P[1, 3] > P[1, 0]  # C->T vs C->A


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
