"""Point reduction primitives for LC-MS plotting.

This module provides:
- Top-K intensity ranking with incremental population (IonFilterRanker)
- m/z consolidation of closely spaced points (centroiding)
"""

from .ion_filter import (
    IonFilterRanker,
    top_k_mask,
)

from .centroid import (
    centroid_mask,
    centroid_ms_data,
    requires_centroiding,
)

__all__ = [
    # Ranking
    'IonFilterRanker',
    'top_k_mask',

    # Centroiding
    'centroid_mask',
    'centroid_ms_data',
    'requires_centroiding',
]
