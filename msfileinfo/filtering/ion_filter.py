"""Top-K intensity ranking for memory-bounded ion caches.

The ranker is populated incrementally (one point or one scan at a time, from
as many spectra as needed) and then evaluated once with ``filter_data()``.
After that, every point added is either kept or discarded:

- exactly ``min(K, population)`` points are kept
- every kept point is at least as intense as every discarded point
- ties on exactly equal intensity are broken by insertion order
  (the earlier insertion wins)

Points carry an opaque non-negative integer index chosen by the caller (for
example a running "master" index across all cached scans), so the result can
be mapped back onto the caller's own arrays.
"""

from typing import Optional

import numpy as np
from numba import njit


@njit
def _top_k_mask(intensities: np.ndarray, k: int) -> np.ndarray:
    """Mark the k most intense points (stable on ties).

    Args:
        intensities: Intensity values (float64)
        k: Number of points to keep

    Returns:
        Boolean keep mask, same length as intensities
    """
    n = len(intensities)
    keep = np.zeros(n, dtype=np.bool_)

    if k <= 0 or n == 0:
        return keep

    if k >= n:
        keep[:] = True
        return keep

    # Mergesort is stable: equal intensities stay in insertion order
    order = np.argsort(-intensities, kind="mergesort")
    for i in range(k):
        keep[order[i]] = True

    return keep


@njit
def _limit_by_intensity_percentage(
    intensities: np.ndarray,
    keep: np.ndarray,
    percentage: float
) -> np.ndarray:
    """Drop kept points beyond a cumulative share of the kept total intensity.

    Walks the kept points from most to least intense; once the running sum
    would exceed ``percentage`` percent of the kept total, that point and all
    weaker ones are discarded. The most intense point always survives.
    """
    total = 0.0
    for i in range(len(intensities)):
        if keep[i]:
            total += intensities[i]

    limit = total * percentage / 100.0
    order = np.argsort(-intensities, kind="mergesort")

    cumulative = 0.0
    kept_any = False
    exceeded = False
    for j in range(len(order)):
        idx = order[j]
        if not keep[idx]:
            continue
        if exceeded or (kept_any and cumulative + intensities[idx] > limit):
            keep[idx] = False
            exceeded = True
        else:
            cumulative += intensities[idx]
            kept_any = True

    return keep


def top_k_mask(intensities: np.ndarray, k: int) -> np.ndarray:
    """Return a keep mask retaining the ``k`` most intense values.

    One-shot counterpart of :class:`IonFilterRanker` for data that is already
    in a single array.

    Args:
        intensities: Intensity values
        k: Number of points to keep (0 discards everything)

    Returns:
        Boolean mask (True = keep)

    Examples:
        >>> top_k_mask(np.array([5.0, 1.0, 9.0, 5.0]), 2)
        array([ True, False,  True, False])
    """
    if k < 0:
        raise ValueError(f"k must be non-negative, got {k}")
    return _top_k_mask(np.asarray(intensities, dtype=np.float64), int(k))


class IonFilterRanker:
    """Incrementally populated top-K filter over (intensity, index) pairs.

    Parameters
    ----------
    max_data_count_to_load : int
        Number of points to keep (K)
    initial_capacity : int, default=1024
        Initial buffer size; buffers double as points are added
    total_intensity_percentage : float, optional
        When set (0-100], additionally keep only the most intense points whose
        cumulative intensity stays within this share of the kept total

    Examples
    --------
    >>> ranker = IonFilterRanker(max_data_count_to_load=2)
    >>> for index, intensity in enumerate([10.0, 50.0, 30.0]):
    ...     ranker.add_data_point(intensity, index)
    >>> ranker.filter_data()
    >>> ranker.kept_indices()
    array([1, 2])
    """

    def __init__(
        self,
        max_data_count_to_load: int,
        initial_capacity: int = 1024,
        total_intensity_percentage: Optional[float] = None,
    ):
        if max_data_count_to_load < 0:
            raise ValueError(
                f"max_data_count_to_load must be non-negative, got {max_data_count_to_load}"
            )
        if total_intensity_percentage is not None and not 0 < total_intensity_percentage <= 100:
            raise ValueError(
                f"total_intensity_percentage must be in (0, 100], got {total_intensity_percentage}"
            )

        self.max_data_count_to_load = int(max_data_count_to_load)
        self.total_intensity_percentage = total_intensity_percentage

        capacity = max(int(initial_capacity), 1)
        self._intensities = np.empty(capacity, dtype=np.float64)
        self._indices = np.empty(capacity, dtype=np.int64)
        self._count = 0

        self._keep: Optional[np.ndarray] = None
        self._lookup: Optional[np.ndarray] = None
        self._sorted_indices: Optional[np.ndarray] = None

    @property
    def data_count(self) -> int:
        """Number of points added so far."""
        return self._count

    @property
    def is_filtered(self) -> bool:
        return self._keep is not None

    def _ensure_capacity(self, required: int):
        capacity = len(self._intensities)
        if required <= capacity:
            return
        while capacity < required:
            capacity *= 2
        intensities = np.empty(capacity, dtype=np.float64)
        indices = np.empty(capacity, dtype=np.int64)
        intensities[:self._count] = self._intensities[:self._count]
        indices[:self._count] = self._indices[:self._count]
        self._intensities = intensities
        self._indices = indices

    def add_data_point(self, intensity: float, index: int):
        """Add one point; invalidates any previous ``filter_data()`` result."""
        if index < 0:
            raise ValueError(f"Index must be non-negative, got {index}")

        self._ensure_capacity(self._count + 1)
        self._intensities[self._count] = intensity
        self._indices[self._count] = index
        self._count += 1
        self._keep = None
        self._lookup = None
        self._sorted_indices = None

    def add_data_points(self, intensities: np.ndarray, indices: Optional[np.ndarray] = None):
        """Add a block of points.

        Args:
            intensities: Intensity values
            indices: Opaque indices; defaults to consecutive values continuing
                from the current data count
        """
        intensities = np.asarray(intensities, dtype=np.float64)
        n = len(intensities)
        if n == 0:
            return

        if indices is None:
            indices = np.arange(self._count, self._count + n, dtype=np.int64)
        else:
            indices = np.asarray(indices, dtype=np.int64)
            if len(indices) != n:
                raise ValueError(
                    f"Got {n} intensities but {len(indices)} indices"
                )
            if np.any(indices < 0):
                raise ValueError("Indices must be non-negative")

        self._ensure_capacity(self._count + n)
        self._intensities[self._count:self._count + n] = intensities
        self._indices[self._count:self._count + n] = indices
        self._count += n
        self._keep = None
        self._lookup = None
        self._sorted_indices = None

    def filter_data(self):
        """Evaluate the global threshold once for every point added."""
        intensities = self._intensities[:self._count]
        keep = _top_k_mask(intensities, self.max_data_count_to_load)

        if (self.total_intensity_percentage is not None
                and self.total_intensity_percentage < 100
                and self._count > 0):
            keep = _limit_by_intensity_percentage(
                intensities, keep, float(self.total_intensity_percentage)
            )

        # Opaque indices sorted for binary-search lookups
        indices = self._indices[:self._count]
        order = np.argsort(indices, kind="stable")

        self._keep = keep
        self._sorted_indices = indices[order]
        self._lookup = order

    def _require_filtered(self):
        if self._keep is None:
            raise RuntimeError("filter_data() must be called before querying results")

    def _position(self, index: int) -> int:
        """Insertion position of ``index`` (the first one if it was added twice)."""
        slot = int(np.searchsorted(self._sorted_indices, index, side="left"))
        if slot >= len(self._sorted_indices) or self._sorted_indices[slot] != index:
            raise KeyError(f"Index {index} was never added")
        return int(self._lookup[slot])

    def is_kept(self, index: int) -> bool:
        self._require_filtered()
        return bool(self._keep[self._position(index)])

    def get_abundance_by_index(self, index: int) -> float:
        """Intensity of the point, negated if the point was discarded."""
        self._require_filtered()
        position = self._position(index)
        intensity = float(self._intensities[position])
        if self._keep[position]:
            return intensity
        return -abs(intensity) if intensity != 0 else -np.finfo(np.float64).tiny

    def keep_mask(self) -> np.ndarray:
        """Keep flags in insertion order."""
        self._require_filtered()
        return self._keep.copy()

    def kept_indices(self) -> np.ndarray:
        """Opaque indices of the kept points, in insertion order."""
        self._require_filtered()
        return self._indices[:self._count][self._keep].copy()

    def reset(self):
        self._count = 0
        self._keep = None
        self._lookup = None
        self._sorted_indices = None
