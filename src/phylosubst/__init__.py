"""
phylosubst: substitution models for likelihood-based phylogenetics.

Transition probabilities P(t) = exp(Qt) of continuous-time Markov models of
character evolution (DNA, protein, binary or any discrete states), with their
first and second derivatives in t, and the parameter protocol used to fit
models by maximum likelihood.

Quick Start
-----------
>>> from phylosubst import DNAModel
>>> model = DNAModel("HKY", rates=[1, 4, 1, 1, 4, 1], frequencies=[0.3, 0.2, 0.2, 0.3])
>>> P = model.compute_trans_matrix(0.1)
>>> P, dP, d2P = model.compute_trans_derv(0.1)

Fit model parameters to two aligned sequences:

>>> from phylosubst import PairwiseLikelihood
>>> lik = PairwiseLikelihood.from_sequences(model, "ACGTTGCA", "ACGTTGTA", alphabet="ACGT")
>>> lnL = model.optimize_parameters(epsilon=1e-4, log_likelihood=lik)
"""

__version__ = "0.1.0"

from .errors import (
    ConvergenceWarning,
    InvalidDimensionError,
    NonReversibleMatrixError,
    NumericalError,
    ParameterOutOfDomainError,
    SubstitutionModelError,
)
from .models import (
    BinaryModel,
    DNAModel,
    GTRModel,
    ModelSubst,
    PartitionModel,
    SiteSpecificModel,
    StateFreqType,
)
from .likelihood import PairwiseLikelihood
from .optimize import ModelOptimizer, OptimizationResult

__all__ = [
    # Models
    "ModelSubst",
    "GTRModel",
    "DNAModel",
    "BinaryModel",
    "PartitionModel",
    "SiteSpecificModel",
    "StateFreqType",

    # Likelihood and optimization
    "PairwiseLikelihood",
    "ModelOptimizer",
    "OptimizationResult",

    # Errors
    "SubstitutionModelError",
    "InvalidDimensionError",
    "NonReversibleMatrixError",
    "NumericalError",
    "ParameterOutOfDomainError",
    "ConvergenceWarning",

    # Version
    "__version__",
]
