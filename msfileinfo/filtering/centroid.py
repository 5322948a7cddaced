"""Consolidation of closely spaced m/z values (centroiding).

Profile-mode or very high resolution spectra contain runs of points only a
few mDa apart. For plotting, each run is reduced to its most intense point:

1. Visit points from highest to lowest intensity
2. A point not yet visited is kept
3. Every unvisited neighbour (either side) closer than the tolerance is
   suppressed
4. Continue until every point was either kept or suppressed

Kept points are at least ``resolution`` m/z units apart, so running the
consolidation twice with the same tolerance changes nothing.

Ties on exactly equal intensity are visited in ascending m/z order, so the
lower m/z point of an equal-intensity pair wins.
"""

from typing import Tuple

import numpy as np
from numba import njit

_UNVISITED = 0
_KEPT = 1
_SUPPRESSED = 2


@njit
def _has_gap_below(mz: np.ndarray, resolution: float) -> bool:
    for i in range(len(mz) - 1):
        if mz[i + 1] - mz[i] < resolution:
            return True
    return False


@njit
def _centroid_kernel(mz: np.ndarray, intensity: np.ndarray, resolution: float) -> np.ndarray:
    """Greedy highest-intensity-wins sweep over m/z sorted points.

    Args:
        mz: m/z values, ascending
        intensity: Intensities (negative values treated as 0)
        resolution: Minimum spacing between kept points

    Returns:
        Boolean keep mask
    """
    n = len(mz)
    state = np.zeros(n, dtype=np.int8)

    clipped = np.empty(n, dtype=np.float64)
    for i in range(n):
        clipped[i] = intensity[i] if intensity[i] > 0 else 0.0

    # Descending intensity; stable, so equal intensities keep m/z order
    order = np.argsort(-clipped, kind="mergesort")

    for j in range(n):
        idx = order[j]
        if state[idx] != _UNVISITED:
            continue

        # Lower m/z neighbours
        k = idx - 1
        while k >= 0 and mz[idx] - mz[k] < resolution:
            if state[k] == _UNVISITED:
                state[k] = _SUPPRESSED
            k -= 1

        # Higher m/z neighbours
        k = idx + 1
        while k < n and mz[k] - mz[idx] < resolution:
            if state[k] == _UNVISITED:
                state[k] = _SUPPRESSED
            k += 1

        state[idx] = _KEPT

    keep = np.zeros(n, dtype=np.bool_)
    for i in range(n):
        keep[i] = state[i] == _KEPT
    return keep


def requires_centroiding(mz: np.ndarray, resolution: float) -> bool:
    """Check whether any two adjacent m/z values are closer than ``resolution``."""
    if resolution <= 0 or len(mz) < 2:
        return False
    return bool(_has_gap_below(np.asarray(mz, dtype=np.float64), float(resolution)))


def centroid_mask(mz: np.ndarray, intensity: np.ndarray, resolution: float) -> np.ndarray:
    """Keep mask for :func:`centroid_ms_data` (all True when resolution <= 0)."""
    mz = np.asarray(mz, dtype=np.float64)
    if len(mz) != len(intensity):
        raise ValueError(
            f"m/z and intensity lengths differ: {len(mz)} vs {len(intensity)}"
        )
    if resolution <= 0 or len(mz) == 0:
        return np.ones(len(mz), dtype=np.bool_)
    return _centroid_kernel(mz, np.asarray(intensity, dtype=np.float64), float(resolution))


def centroid_ms_data(
    mz: np.ndarray,
    intensity: np.ndarray,
    charge: np.ndarray,
    resolution: float
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Consolidate points closer than ``resolution`` m/z units.

    Args:
        mz: m/z values, sorted ascending
        intensity: Intensities
        charge: Charge states (0 = unassigned)
        resolution: Centroiding tolerance; <= 0 disables consolidation

    Returns:
        (mz, intensity, charge) of the surviving points, ascending m/z

    Examples:
        >>> mz = np.array([100.0, 100.0005, 105.0])
        >>> intensity = np.array([50.0, 80.0, 10.0], dtype=np.float32)
        >>> charge = np.zeros(3, dtype=np.uint8)
        >>> centroid_ms_data(mz, intensity, charge, 0.01)[0]
        array([100.0005, 105.    ])
    """
    if resolution <= 0:
        return mz, intensity, charge

    keep = centroid_mask(mz, intensity, resolution)
    return mz[keep], intensity[keep], charge[keep]
