"""
Substitution models.

- **ModelSubst**: base interface with Jukes-Cantor defaults for any state space
- **GTRModel**: general time-reversible model with optional tied rates
- **DNAModel**: named nucleotide models (JC, F81, K80, HKY, TN, K81, SYM, GTR)
- **BinaryModel**: two-state models (JC2, GTR2)
- **PartitionModel**: independent sub-models selected per alignment pattern
- **SiteSpecificModel**: shared rates with per-pattern frequency profiles

Every model computes transition probability matrices, their time derivatives
and exposes its free parameters as a vector for optimization.
"""

from phylosubst.models.base import ModelSubst, StateFreqType
from phylosubst.models.binary import BinaryModel
from phylosubst.models.dna import DNA_MODELS, DNAModel
from phylosubst.models.gtr import GTRModel, compute_state_frequencies
from phylosubst.models.partition import PartitionModel
from phylosubst.models.site_specific import SiteSpecificModel

__all__ = [
    "ModelSubst",
    "StateFreqType",
    "GTRModel",
    "DNAModel",
    "DNA_MODELS",
    "BinaryModel",
    "PartitionModel",
    "SiteSpecificModel",
    "compute_state_frequencies",
]
