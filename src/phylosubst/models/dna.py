"""
Named nucleotide substitution models.

All models are GTR with tied rate entries. Rates are ordered
AC, AG, AT, CG, CT, GT; states are ordered A, C, G, T.
"""

from typing import Optional, Sequence

from .base import StateFreqType
from .gtr import GTRModel

DNA_STATES = "ACGT"

# name -> (rate constraint, default frequency type, full name)
DNA_MODELS = {
    "JC": ("000000", StateFreqType.EQUAL, "JC (Jukes and Cantor, 1969)"),
    "F81": ("000000", StateFreqType.EMPIRICAL, "F81 (Felsenstein, 1981)"),
    "K80": ("010010", StateFreqType.EQUAL, "K80 (Kimura, 1980)"),
    "HKY": ("010010", StateFreqType.EMPIRICAL, "HKY (Hasegawa, Kishino and Yano, 1985)"),
    "TN": ("010020", StateFreqType.EMPIRICAL, "TN (Tamura and Nei, 1993)"),
    "K81": ("012210", StateFreqType.EQUAL, "K81 (Kimura, 1981)"),
    "SYM": ("012345", StateFreqType.EQUAL, "SYM (Zharkikh, 1994)"),
    "GTR": ("012345", StateFreqType.EMPIRICAL, "GTR (Tavare, 1986)"),
}

DNA_MODEL_ALIASES = {
    "JC69": "JC",
    "K2P": "K80",
    "HKY85": "HKY",
    "TN93": "TN",
    "K3P": "K81",
}


def resolve_dna_model_name(name: str) -> str:
    """Canonical name of a nucleotide model (case-insensitive)."""
    key = name.upper()
    key = DNA_MODEL_ALIASES.get(key, key)
    if key not in DNA_MODELS:
        valid = sorted(set(DNA_MODELS) | set(DNA_MODEL_ALIASES))
        raise ValueError(f"Unknown DNA model '{name}'. Valid models: {', '.join(valid)}")
    return key


class DNAModel(GTRModel):
    """
    Nucleotide model selected by name.

    Parameters
    ----------
    name : str
        One of JC/JC69, F81, K80/K2P, HKY/HKY85, TN/TN93, K81/K3P, SYM, GTR
    rates : sequence of float, optional
        Six rates AC, AG, AT, CG, CT, GT; tied entries are averaged
    frequencies : sequence of float, optional
        Base frequencies A, C, G, T
    freq_type : StateFreqType, optional
        Overrides the model's default. Models whose default is EMPIRICAL
        fall back to OPTIMIZED start values when no frequencies are given.

    Examples
    --------
    >>> hky = DNAModel("HKY", rates=[1, 4, 1, 1, 4, 1], frequencies=[0.3, 0.2, 0.2, 0.3])
    >>> hky.get_ndim()
    1
    """

    def __init__(
        self,
        name: str = "JC",
        rates: Optional[Sequence[float]] = None,
        frequencies: Optional[Sequence[float]] = None,
        freq_type: Optional[StateFreqType] = None,
        closed_form: bool = True,
    ):
        key = resolve_dna_model_name(name)
        constraint, default_freq_type, full_name = DNA_MODELS[key]

        if freq_type is None:
            freq_type = default_freq_type
            if freq_type == StateFreqType.EMPIRICAL and frequencies is None:
                freq_type = StateFreqType.OPTIMIZED

        super().__init__(
            4,
            rates=rates,
            frequencies=frequencies,
            freq_type=freq_type,
            rate_constraint=[int(c) for c in constraint],
            closed_form=closed_form,
            name=key,
            full_name=full_name,
        )
