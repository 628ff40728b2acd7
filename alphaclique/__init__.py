"""alphaclique - Correlation-based grouping of LC-MS features into cliques.

Given the features detected in one sample and the raw scans they came from,
alphaclique rebuilds every feature's extracted ion chromatogram, scores all
feature pairs by cosine similarity, removes near-duplicate features and
partitions the rest into cliques of co-eluting signals (isotopologues,
adducts, in-source fragments of the same compound).

Hot loops are Numba-compiled; the public API works on plain NumPy arrays and
small dataclasses.
"""

__version__ = "0.1.0"

from alphaclique import features
from alphaclique import xic
from alphaclique import scoring
from alphaclique import cliques
from alphaclique.convenience import compute_cliques

__all__ = [
    "features",
    "xic",
    "scoring",
    "cliques",
    "compute_cliques",
]
