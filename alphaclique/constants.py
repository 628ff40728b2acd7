"""Default thresholds and sentinels for correlation-based feature grouping.

This module collects the numeric defaults shared by trace extraction,
similarity scoring, duplicate filtering and clique assignment so that every
stage agrees on the same values.

Key Features
------------
- Sentinel intensity for scans without signal in a feature's window
- Near-duplicate detection thresholds (similarity, relative m/z, RT, intensity)
- Default clique search tolerance and numeric guards for log-odds weights

Sources
-------
- Duplicate and clique defaults follow the CliqueMS reference parameters
  (mzdiff=5e-6, rtdiff=1e-4, intdiff=1e-4, tol=1e-5).
"""

# =============================================================================
# Trace Extraction
# =============================================================================

# Value recorded for scans outside a feature's window or without matching points
NO_SIGNAL_INTENSITY = 0.0

# Maximum |scan_time - rt_bound| accepted when locating window bounds.
# 0.0 reproduces exact equality matching.
DEFAULT_RT_MATCH_TOLERANCE = 1e-6

# =============================================================================
# Near-Duplicate Filtering
# =============================================================================

# Cosine similarity above which two features are duplicate candidates
DUPLICATE_SIMILARITY_THRESHOLD = 0.99

# Relative difference tolerances (|a - b| / |a|)
DEFAULT_MZ_TOLERANCE = 5e-6
DEFAULT_RT_TOLERANCE = 1e-4
DEFAULT_INTENSITY_TOLERANCE = 1e-4

# =============================================================================
# Clique Assignment
# =============================================================================

# Relative log-likelihood change at which the clique search stops
DEFAULT_CLIQUE_TOLERANCE = 1e-5

# Similarity clip for log-odds edge weights: s in [EPS, 1 - EPS]
SIMILARITY_EPSILON = 1e-10

# Minimum log-likelihood gain for moving a node; avoids flipping between
# equally good cliques
MIN_MOVE_GAIN = 1e-12

# Upper bound on full sweeps over all nodes
DEFAULT_MAX_SWEEPS = 100
