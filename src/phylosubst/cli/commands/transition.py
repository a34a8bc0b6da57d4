"""Transition and info command implementations."""

import json
import sys
from typing import Optional, Sequence

import numpy as np

from phylosubst.errors import SubstitutionModelError
from phylosubst.models import (
    BinaryModel,
    DNAModel,
    GTRModel,
    ModelSubst,
    StateFreqType,
    compute_state_frequencies,
)
from phylosubst.models.binary import BINARY_MODELS
from phylosubst.models.dna import (
    DNA_MODEL_ALIASES,
    DNA_MODELS,
    DNA_STATES,
    resolve_dna_model_name,
)

AMINO_ACIDS = "ARNDCQEGHILKMFPSTWYV"
BINARY_STATES = "01"

# Added to every state count when frequencies are read off the sequences
EMPIRICAL_PSEUDOCOUNT = 0.5


def parse_floats(text: Optional[str]) -> Optional[list[float]]:
    """Parse a comma-separated list of numbers."""
    if text is None:
        return None
    try:
        return [float(x) for x in text.split(",") if x.strip()]
    except ValueError:
        raise ValueError(f"Expected comma-separated numbers, got '{text}'")


def empirical_frequencies(sequences: Sequence[str], alphabet: str) -> np.ndarray:
    """State frequencies counted over sequences, ignoring characters outside ``alphabet``."""
    text = "".join(sequences).upper()
    counts = np.array([text.count(c) for c in alphabet], dtype=float)
    return compute_state_frequencies(counts, pseudocount=EMPIRICAL_PSEUDOCOUNT)


def build_model(
    model: str,
    states: Optional[int] = None,
    rates: Optional[str] = None,
    freqs: Optional[str] = None,
    optimize_freqs: bool = False,
    sequences: Optional[Sequence[str]] = None,
) -> ModelSubst:
    """
    Build a model from command-line options.

    DNA names (JC, HKY, GTR, ...) give 4-state models, JC2 and GTR2 binary
    models, POISSON a 20-state equal-rate model. With ``--states`` other than
    4, JC and GTR give the generic model over that many states.

    Models whose default frequencies are EMPIRICAL (F81, HKY, TN, GTR, GTR2)
    take them from ``sequences`` when neither ``freqs`` nor ``optimize_freqs``
    is given.
    """
    name = model.upper()
    rate_values = parse_floats(rates)
    freq_values = parse_floats(freqs)
    freq_type = StateFreqType.OPTIMIZED if optimize_freqs else None
    count_frequencies = sequences is not None and freq_values is None and not optimize_freqs

    if name in BINARY_MODELS:
        if count_frequencies and BINARY_MODELS[name][0] == StateFreqType.EMPIRICAL:
            freq_values = empirical_frequencies(sequences, BINARY_STATES)
        return BinaryModel(name, frequencies=freq_values, freq_type=freq_type)

    if name == "POISSON":
        n = states or 20
        if not optimize_freqs:
            return GTRModel.poisson(n, frequencies=freq_values)
        return GTRModel(
            n,
            frequencies=freq_values,
            freq_type=StateFreqType.OPTIMIZED,
            rate_constraint=[0] * (n * (n - 1) // 2),
            name="Poisson",
        )

    if states is not None and states != 4:
        if name == "JC" and rate_values is None and freq_values is None and not optimize_freqs:
            return ModelSubst(states)
        if name in ("JC", "GTR"):
            return GTRModel(
                states,
                rates=rate_values,
                frequencies=freq_values,
                freq_type=freq_type,
                rate_constraint=[0] * (states * (states - 1) // 2) if name == "JC" else None,
                name=name,
            )
        raise ValueError(f"Model '{model}' is only defined for 4 states")

    if name in DNA_MODELS or name in DNA_MODEL_ALIASES:
        default_freq_type = DNA_MODELS[resolve_dna_model_name(name)][1]
        if count_frequencies and default_freq_type == StateFreqType.EMPIRICAL:
            freq_values = empirical_frequencies(sequences, DNA_STATES)
        return DNAModel(name, rates=rate_values, frequencies=freq_values, freq_type=freq_type)

    valid = sorted(set(DNA_MODELS) | set(DNA_MODEL_ALIASES) | set(BINARY_MODELS) | {"POISSON"})
    raise ValueError(f"Unknown model '{model}'. Valid models: {', '.join(valid)}")


def alphabet_for(model: ModelSubst) -> str:
    """State alphabet used to read sequences for a model."""
    if model.num_states == 2:
        return BINARY_STATES
    if model.num_states == 4:
        return DNA_STATES
    if model.num_states == 20:
        return AMINO_ACIDS
    raise ValueError(f"No sequence alphabet for {model.num_states}-state models")


def format_matrix(title: str, M: np.ndarray) -> str:
    lines = [title]
    for row in M:
        lines.append("  " + " ".join(f"{x:12.8f}" for x in row))
    return "\n".join(lines)


def run_transition(
    model: str,
    time: float,
    states: Optional[int],
    rates: Optional[str],
    freqs: Optional[str],
    derivatives: bool,
    format: str,
):
    """Print the transition matrix of a model."""
    try:
        model_obj = build_model(model, states=states, rates=rates, freqs=freqs)
        if derivatives:
            P, dP, d2P = model_obj.compute_trans_derv(time)
        else:
            P = model_obj.compute_trans_matrix(time)
    except (ValueError, SubstitutionModelError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if format == "json":
        data = {"model": model_obj.name, "time": time, "P": P.tolist()}
        if derivatives:
            data["dP"] = dP.tolist()
            data["d2P"] = d2P.tolist()
        print(json.dumps(data, indent=2))
        return

    print(f"Model: {model_obj.full_name}")
    print(f"Time:  {time}")
    print(format_matrix("P(t):", P))
    if derivatives:
        print(format_matrix("dP/dt:", dP))
        print(format_matrix("d2P/dt2:", d2P))


def run_info(
    model: str,
    states: Optional[int],
    rates: Optional[str],
    freqs: Optional[str],
):
    """Print the diagnostic dump of a model."""
    try:
        model_obj = build_model(model, states=states, rates=rates, freqs=freqs)
    except (ValueError, SubstitutionModelError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    model_obj.write_info()
