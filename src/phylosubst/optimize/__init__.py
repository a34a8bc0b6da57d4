"""
Optimization routines for maximum likelihood parameter estimation.

- **Parameter vectors**: 1-indexed packing, bounds and clamping
- **ModelOptimizer**: bounded scipy.optimize minimization with restarts
- **OptimizationResult**: summary, JSON and DataFrame export
"""

from phylosubst.optimize.optimizer import ModelOptimizer
from phylosubst.optimize.results import OptimizationResult

__all__ = ["ModelOptimizer", "OptimizationResult"]
