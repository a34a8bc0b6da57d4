"""Main CLI application for phylosubst."""

import typer
from pathlib import Path
from typing import Optional
from enum import Enum

app = typer.Typer(
    name="phylosubst",
    help="Transition probabilities and parameter fitting for substitution models",
    no_args_is_help=True,
)


class OutputFormat(str, Enum):
    """Output format."""
    TEXT = "text"
    JSON = "json"


MODEL_HELP = "Model name (JC, F81, K80, HKY, TN, K81, SYM, GTR, JC2, GTR2, POISSON)"


@app.command()
def transition(
    model: str = typer.Option(
        ...,
        "--model", "-m",
        help=MODEL_HELP,
    ),
    time: float = typer.Option(
        ...,
        "--time", "-t",
        help="Branch length (expected substitutions per site)",
        min=0.0,
    ),
    states: Optional[int] = typer.Option(
        None,
        "--states", "-n",
        help="Number of states for JC, GTR and POISSON",
        min=2,
    ),
    rates: Optional[str] = typer.Option(
        None,
        "--rates", "-r",
        help="Comma-separated upper-triangle rates (DNA order: AC,AG,AT,CG,CT,GT)",
    ),
    freqs: Optional[str] = typer.Option(
        None,
        "--freqs", "-f",
        help="Comma-separated state frequencies",
    ),
    derivatives: bool = typer.Option(
        False,
        "--derivatives", "-d",
        help="Also print first and second time derivatives",
    ),
    format: OutputFormat = typer.Option(
        OutputFormat.TEXT,
        "--format",
        help="Output format",
    ),
):
    """
    Print the transition probability matrix P(t) of a model.

    Example:
        phylosubst transition -m HKY -t 0.1 -r 1,4,1,1,4,1 -f 0.3,0.2,0.2,0.3
        phylosubst transition -m JC -n 20 -t 0.5 --derivatives --format json
    """
    from .commands.transition import run_transition

    run_transition(
        model=model,
        time=time,
        states=states,
        rates=rates,
        freqs=freqs,
        derivatives=derivatives,
        format=format.value,
    )


@app.command()
def info(
    model: str = typer.Option(
        ...,
        "--model", "-m",
        help=MODEL_HELP,
    ),
    states: Optional[int] = typer.Option(
        None,
        "--states", "-n",
        help="Number of states for JC, GTR and POISSON",
        min=2,
    ),
    rates: Optional[str] = typer.Option(
        None,
        "--rates", "-r",
        help="Comma-separated upper-triangle rates",
    ),
    freqs: Optional[str] = typer.Option(
        None,
        "--freqs", "-f",
        help="Comma-separated state frequencies",
    ),
):
    """
    Print rates, frequencies, rate matrix and eigenvalues of a model.

    Example:
        phylosubst info -m GTR -r 1,2,1,1,2,1 -f 0.1,0.2,0.3,0.4
    """
    from .commands.transition import run_info

    run_info(model=model, states=states, rates=rates, freqs=freqs)


@app.command()
def fit(
    model: str = typer.Option(
        ...,
        "--model", "-m",
        help=MODEL_HELP,
    ),
    seq1: str = typer.Option(
        ...,
        "--seq1",
        help="First aligned sequence",
    ),
    seq2: str = typer.Option(
        ...,
        "--seq2",
        help="Second aligned sequence",
    ),
    states: Optional[int] = typer.Option(
        None,
        "--states", "-n",
        help="Number of states for JC, GTR and POISSON",
        min=2,
    ),
    rates: Optional[str] = typer.Option(
        None,
        "--rates", "-r",
        help="Comma-separated starting rates",
    ),
    freqs: Optional[str] = typer.Option(
        None,
        "--freqs", "-f",
        help="Comma-separated state frequencies",
    ),
    optimize_freqs: bool = typer.Option(
        False,
        "--optimize-freqs",
        help="Estimate state frequencies by maximum likelihood",
    ),
    epsilon: float = typer.Option(
        0.001,
        "--epsilon",
        help="Stop when a round improves the log-likelihood by less than this",
        min=0.0,
    ),
    maxiter: int = typer.Option(
        200,
        "--maxiter",
        help="Maximum optimization iterations per round",
        min=1,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output file (default: stdout)",
    ),
    format: OutputFormat = typer.Option(
        OutputFormat.TEXT,
        "--format",
        help="Output format",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show optimization progress",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet", "-q",
        help="Minimal output",
    ),
):
    """
    Fit a model and the distance between two aligned sequences.

    Example:
        phylosubst fit -m HKY --seq1 ACGTACGTAA --seq2 ACGTGCGTAA
        phylosubst fit -m GTR2 --seq1 0101100 --seq2 0111100 --optimize-freqs
    """
    from .commands.fit import run_fit

    run_fit(
        model=model,
        seq1=seq1,
        seq2=seq2,
        states=states,
        rates=rates,
        freqs=freqs,
        optimize_freqs=optimize_freqs,
        epsilon=epsilon,
        maxiter=maxiter,
        output=output,
        format=format.value,
        verbose=verbose,
        quiet=quiet,
    )


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
