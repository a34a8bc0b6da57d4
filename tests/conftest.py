"""
Pytest configuration and shared fixtures.
"""

import numpy as np
import pytest
from typer.testing import CliRunner

from phylosubst.models import (
    BinaryModel,
    DNAModel,
    GTRModel,
    ModelSubst,
    StateFreqType,
)


@pytest.fixture
def cli_runner():
    """CLI test runner for Typer apps."""
    return CliRunner()


@pytest.fixture
def unequal_pi():
    """Unequal DNA base frequencies (A, C, G, T)."""
    return np.array([0.3, 0.2, 0.4, 0.1])


@pytest.fixture
def gtr_rates():
    """Distinct GTR rates AC, AG, AT, CG, CT, GT."""
    return np.array([1.2, 3.5, 0.6, 0.9, 4.1, 1.0])


@pytest.fixture
def gtr_model(gtr_rates, unequal_pi):
    """GTR model evaluated through the eigendecomposition."""
    return GTRModel(4, rates=gtr_rates, frequencies=unequal_pi)


def random_gtr_model(n: int, seed: int = 42) -> GTRModel:
    """GTR model over n states with random rates and frequencies."""
    rng = np.random.RandomState(seed)
    pi = rng.dirichlet(np.ones(n) * 2)
    rates = rng.uniform(0.2, 3.0, n * (n - 1) // 2)
    return GTRModel(n, rates=rates, frequencies=pi)


@pytest.fixture(
    params=["jc_default", "jc20_default", "hky", "gtr", "gtr_eigen_equal", "gtr5", "binary", "poisson"]
)
def any_model(request, gtr_rates, unequal_pi):
    """One model of each family and evaluation path."""
    builders = {
        "jc_default": lambda: ModelSubst(4),
        "jc20_default": lambda: ModelSubst(20),
        "hky": lambda: DNAModel("HKY", rates=[1, 4, 1, 1, 4, 1], frequencies=unequal_pi),
        "gtr": lambda: GTRModel(4, rates=gtr_rates, frequencies=unequal_pi),
        "gtr_eigen_equal": lambda: GTRModel(4, frequencies=unequal_pi, closed_form=False),
        "gtr5": lambda: random_gtr_model(5, seed=7),
        "binary": lambda: BinaryModel("GTR2", frequencies=[0.35, 0.65]),
        "poisson": lambda: GTRModel.poisson(
            20, frequencies=np.linspace(1, 3, 20),
        ),
    }
    return builders[request.param]()


@pytest.fixture
def optimized_freq_gtr(gtr_rates, unequal_pi):
    """GTR model with rates and frequencies both free."""
    return GTRModel(
        4, rates=gtr_rates, frequencies=unequal_pi, freq_type=StateFreqType.OPTIMIZED
    )
