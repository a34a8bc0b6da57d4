"""
Exception and warning types raised by substitution models.
"""


class SubstitutionModelError(Exception):
    """Base class for all substitution model errors."""


class InvalidDimensionError(SubstitutionModelError, ValueError):
    """Number of states is not positive, or an array has the wrong length."""


class NonReversibleMatrixError(SubstitutionModelError):
    """Rate matrix violates detailed balance with its state frequencies."""


class NumericalError(SubstitutionModelError, ArithmeticError):
    """Eigendecomposition failed or produced values outside tolerance."""


class ParameterOutOfDomainError(SubstitutionModelError, ValueError):
    """Parameter request that cannot be projected back into its domain."""


class ConvergenceWarning(UserWarning):
    """Optimizer stopped at its iteration cap before reaching epsilon."""
