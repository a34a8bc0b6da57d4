"""Fit command implementation."""

import json
import sys
import warnings
from pathlib import Path
from typing import Optional

from phylosubst.errors import ConvergenceWarning, SubstitutionModelError
from phylosubst.likelihood import PairwiseLikelihood

from .transition import alphabet_for, build_model


def run_fit(
    model: str,
    seq1: str,
    seq2: str,
    states: Optional[int],
    rates: Optional[str],
    freqs: Optional[str],
    optimize_freqs: bool,
    epsilon: float,
    maxiter: int,
    output: Optional[Path],
    format: str,
    verbose: bool,
    quiet: bool,
):
    """Fit branch length and model parameters to two aligned sequences."""
    try:
        model_obj = build_model(
            model,
            states=states,
            rates=rates,
            freqs=freqs,
            optimize_freqs=optimize_freqs,
            sequences=(seq1, seq2),
        )
        lik = PairwiseLikelihood.from_sequences(model_obj, seq1, seq2, alphabet_for(model_obj))
    except (ValueError, SubstitutionModelError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not quiet:
        print(f"Fitting Model: {model_obj.full_name}", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print(f"Sites:      {int(lik.weights.sum())}", file=sys.stderr)
        print(f"Parameters: {model_obj.get_ndim()} + branch length", file=sys.stderr)
        print(file=sys.stderr)

    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            branch_length, lnL = lik.optimize_branch_length()
            if model_obj.get_ndim() > 0:
                model_obj.optimize_parameters(
                    epsilon=epsilon, log_likelihood=lik, maxiter=maxiter, verbose=verbose
                )
                branch_length, lnL = lik.optimize_branch_length()
    except SubstitutionModelError as e:
        print("Error: Model fitting failed", file=sys.stderr)
        print(f"Details: {e}", file=sys.stderr)
        sys.exit(1)

    for w in caught:
        print(f"Warning: {w.message}", file=sys.stderr)

    result = model_obj.last_optimization
    if format == "json":
        data = result.to_dict() if result is not None else {"model_name": model_obj.name}
        data["log_likelihood"] = lnL
        data["branch_length"] = branch_length
        data["rates"] = model_obj.get_rate_matrix().tolist()
        data["frequencies"] = model_obj.get_state_frequency().tolist()
        output_text = json.dumps(data, indent=2)
    else:
        lines = [
            f"MODEL: {model_obj.name}",
            f"Log-likelihood: {lnL:.6f}",
            f"Branch length:  {branch_length:.6f}",
            "Rates:          " + " ".join(f"{r:.5f}" for r in model_obj.get_rate_matrix()),
            "Frequencies:    " + " ".join(f"{f:.5f}" for f in model_obj.get_state_frequency()),
        ]
        if result is not None and not result.converged:
            lines.append("WARNING: parameter optimization did not converge")
        output_text = "\n".join(lines)

    if output:
        with open(output, "w") as f:
            f.write(output_text + "\n")
        if not quiet:
            print(f"\nResults written to {output}", file=sys.stderr)
    else:
        print(output_text)
