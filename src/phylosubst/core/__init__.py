"""
Core numerical routines for substitution models.

- **Rate matrices**: reversible Q from exchangeabilities and frequencies
- **Eigendecomposition**: symmetric similarity transform for reversible Q
- **Transition probabilities**: P(t) and its time derivatives, general and
  closed form

These are expert-level functions; models in :mod:`phylosubst.models` wrap them.
"""

from phylosubst.core.matrix import (
    EigenDecomposition,
    check_detailed_balance,
    check_row_sums,
    create_reversible_Q,
    eigen_decompose_rev,
    rates_to_matrix,
)
from phylosubst.core.transition import (
    closed_form_trans_matrix,
    compute_trans,
    compute_trans_derv,
    compute_trans_matrix,
    matrix_exponential,
)

__all__ = [
    "EigenDecomposition",
    "check_detailed_balance",
    "check_row_sums",
    "create_reversible_Q",
    "eigen_decompose_rev",
    "rates_to_matrix",
    "closed_form_trans_matrix",
    "compute_trans",
    "compute_trans_derv",
    "compute_trans_matrix",
    "matrix_exponential",
]
