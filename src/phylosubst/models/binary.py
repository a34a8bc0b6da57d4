"""
Substitution models for binary (two-state) data.
"""

from typing import Optional, Sequence

from .base import StateFreqType
from .gtr import GTRModel

BINARY_MODELS = {
    "JC2": (StateFreqType.EQUAL, "JC2 (Jukes-Cantor type model for binary data)"),
    "GTR2": (StateFreqType.EMPIRICAL, "GTR2 (general time reversible model for binary data)"),
}


class BinaryModel(GTRModel):
    """
    Model for binary data.

    A two-state reversible chain has a single exchangeability, so every
    binary model is F81-shaped and is evaluated in closed form. GTR2 differs
    from JC2 only in its state frequencies, which may be optimized.

    Parameters
    ----------
    name : str
        "JC2" or "GTR2"
    frequencies : sequence of float, optional
        Frequencies of states 0 and 1
    freq_type : StateFreqType, optional
        Overrides the model's default frequency type
    """

    def __init__(
        self,
        name: str = "JC2",
        frequencies: Optional[Sequence[float]] = None,
        freq_type: Optional[StateFreqType] = None,
    ):
        key = name.upper()
        if key not in BINARY_MODELS:
            raise ValueError(
                f"Unknown binary model '{name}'. Valid models: {', '.join(BINARY_MODELS)}"
            )
        default_freq_type, full_name = BINARY_MODELS[key]

        if freq_type is None:
            freq_type = default_freq_type
            if freq_type == StateFreqType.EMPIRICAL and frequencies is None:
                freq_type = StateFreqType.OPTIMIZED

        super().__init__(
            2,
            frequencies=frequencies,
            freq_type=freq_type,
            name=key,
            full_name=full_name,
        )
