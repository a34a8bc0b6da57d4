"""
Result object for model parameter optimization.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

try:
    import pandas as pd
    PANDAS_AVAILABLE = True
except ImportError:
    PANDAS_AVAILABLE = False


@dataclass
class OptimizationResult:
    """
    Outcome of :meth:`ModelOptimizer.optimize`.

    Attributes
    ----------
    model_name : str
        Name of the optimized model
    log_likelihood : float
        Best log-likelihood found
    initial_log_likelihood : float
        Log-likelihood at the starting parameters
    variables : np.ndarray
        Best parameter vector, indexed from 1 (index 0 unused)
    n_rounds : int
        Number of optimizer restarts performed
    n_evaluations : int
        Number of successful likelihood evaluations
    converged : bool
        Whether the last round improved lnL by less than epsilon
    success : bool
        scipy's success flag for the last round
    message : str
        scipy's message for the last round
    history : list of dict
        One entry per likelihood evaluation
    """

    model_name: str
    log_likelihood: float
    initial_log_likelihood: float
    variables: np.ndarray
    n_rounds: int
    n_evaluations: int
    converged: bool
    success: bool = True
    message: str = ""
    history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def improvement(self) -> float:
        return self.log_likelihood - self.initial_log_likelihood

    def summary(self) -> str:
        """Formatted text summary."""
        lines = [
            "=" * 60,
            f"MODEL: {self.model_name}",
            "=" * 60,
            f"Log-likelihood:         {self.log_likelihood:.6f}",
            f"Initial log-likelihood: {self.initial_log_likelihood:.6f}",
            f"Rounds:                 {self.n_rounds}",
            f"Evaluations:            {self.n_evaluations}",
            f"Converged:              {'yes' if self.converged else 'NO'}",
            "",
            "Parameters:",
        ]
        for i, value in enumerate(self.variables[1:], start=1):
            lines.append(f"  x[{i}] = {value:.6f}")
        if not self.converged:
            lines.append("")
            lines.append("WARNING: iteration cap reached before convergence")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary (history excluded)."""
        d = asdict(self)
        d.pop("history")
        d["variables"] = [float(v) for v in self.variables]
        return d

    def to_json(self, path: Optional[str] = None, indent: int = 2) -> str:
        """
        Export as JSON.

        Parameters
        ----------
        path : str, optional
            If given, also write the JSON to this file
        indent : int
            JSON indentation
        """
        text = json.dumps(self.to_dict(), indent=indent)
        if path is not None:
            with open(path, "w") as f:
                f.write(text)
        return text

    def to_dataframe(self):
        """
        Likelihood evaluation history as a pandas DataFrame.

        Raises
        ------
        ImportError
            If pandas is not installed
        """
        if not PANDAS_AVAILABLE:
            raise ImportError("pandas is required for to_dataframe(); install with: pip install pandas")
        return pd.DataFrame(self.history)

    def __str__(self) -> str:
        return self.summary()
