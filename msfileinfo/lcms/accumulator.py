"""Streaming, memory-bounded cache of LC-MS scans for 2D plotting.

Scans are pushed one at a time by a reader loop. Each scan is sorted by m/z,
stripped of zero / low intensity points, centroided when points are closer
than the m/z resolution, and capped at MAX_ALLOWABLE_ION_COUNT ions.

Memory is bounded by trimming mid-stream: once the cache holds more than
``TRIM_TRIGGER_MULTIPLIER x max_points_to_plot`` points (and has grown by 10%
since the last trim), the globally most intense ``max_points_to_plot`` points
are retained across all scans. Scans with ``min_points_per_spectrum`` points
or fewer are left alone, and no trimmed scan drops below that floor, so
sparse scans are not erased by a threshold set by dense ones.

Note that the number of points remaining after a trim can exceed the target:
with a floor of 5 points and 5,000 scans, at least 25,000 points stay cached.
"""

import logging
from enum import Enum
from typing import Iterator, List, Optional, Sequence

import numpy as np

from msfileinfo.constants import (
    ION_CAP_WARN_FIRST_N,
    MAX_ALLOWABLE_ION_COUNT,
    MAX_CACHED_INTENSITY,
    SHRINK_FILL_FRACTION,
    SHRINK_MIN_CAPACITY,
    SORT_WARN_EVERY_N,
    SORT_WARN_FIRST_N,
    TRIM_REARM_GROWTH_FACTOR,
    TRIM_TRIGGER_MULTIPLIER,
)
from msfileinfo.filtering import IonFilterRanker, centroid_ms_data, requires_centroiding
from .options import FilterOptions
from .scan_data import ScanRecord

logger = logging.getLogger(__name__)


class AddOutcome(Enum):
    """Result of pushing a scan into the accumulator."""

    ADDED = "added"
    NO_DATA = "no_data"  # empty ion list; nothing to do, not an error

    @property
    def added(self) -> bool:
        return self is AddOutcome.ADDED


class TrimError(RuntimeError):
    """Filtering or trimming the cache failed; the cache may be partially trimmed."""


def matches_ms_level(scan: ScanRecord, ms_level_filter: int) -> bool:
    """0 matches every scan; otherwise the MS level must match exactly."""
    return ms_level_filter == 0 or scan.ms_level == ms_level_filter


class ScanAccumulator:
    """Ordered, trimmed collection of ScanRecords.

    Single writer: scans are added sequentially by one reader loop. The
    accumulator exclusively owns its ScanRecords; callers get read access
    through ``scans`` and ``get_cached_scan_by_index``.

    Parameters
    ----------
    options : FilterOptions, optional
        Session options (defaults to ``FilterOptions()``)

    Examples
    --------
    >>> accumulator = ScanAccumulator(FilterOptions(mz_resolution=0.01))
    >>> accumulator.add_scan(1, 1, 0.5, [(100.0, 50, 0), (100.0005, 80, 0), (105.0, 10, 0)])
    <AddOutcome.ADDED: 'added'>
    >>> accumulator.points_cached
    2
    """

    def __init__(self, options: Optional[FilterOptions] = None):
        self.options = options if options is not None else FilterOptions()

        self._scans: List[ScanRecord] = []
        self._points_cached = 0
        self._points_cached_after_last_trim = 0
        self._trim_count = 0

        # Log throttling, per instance
        self._sorting_warn_count = 0
        self._spectra_exceeding_max_ion_count = 0
        self._max_ion_count_reported = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def scan_count_cached(self) -> int:
        return len(self._scans)

    @property
    def points_cached(self) -> int:
        """Total ion count across all cached scans."""
        return self._points_cached

    @property
    def points_cached_after_last_trim(self) -> int:
        return self._points_cached_after_last_trim

    @property
    def trim_count(self) -> int:
        """Number of global trim passes performed since the last reset."""
        return self._trim_count

    @property
    def scans(self) -> Iterator[ScanRecord]:
        return iter(self._scans)

    def __len__(self) -> int:
        return len(self._scans)

    def get_cached_scan_by_index(self, index: int) -> Optional[ScanRecord]:
        if 0 <= index < len(self._scans):
            return self._scans[index]
        return None

    def reset(self):
        self._scans.clear()
        self._points_cached = 0
        self._points_cached_after_last_trim = 0
        self._trim_count = 0

    # ------------------------------------------------------------------
    # Adding scans
    # ------------------------------------------------------------------

    def add_scan(
        self,
        scan_number: int,
        ms_level: int,
        scan_time_minutes: float,
        ions: Sequence[Sequence[float]],
    ) -> AddOutcome:
        """Add a scan given as (mz, intensity[, charge]) tuples.

        Args:
            scan_number: Scan number
            ms_level: MS level (1 = survey scan)
            scan_time_minutes: Elution time
            ions: Ion list; order does not matter

        Returns:
            AddOutcome.NO_DATA for an empty ion list, otherwise AddOutcome.ADDED
        """
        if ions is None or len(ions) == 0:
            return AddOutcome.NO_DATA

        data = np.asarray(ions, dtype=np.float64)
        if data.ndim != 2 or data.shape[1] not in (2, 3):
            raise ValueError(
                f"Ions for scan {scan_number} must be (mz, intensity[, charge]) tuples"
            )

        charge = data[:, 2] if data.shape[1] == 3 else None
        return self.add_scan_arrays(
            scan_number, ms_level, scan_time_minutes, data[:, 0], data[:, 1], charge
        )

    def add_scan_2d(
        self,
        scan_number: int,
        ms_level: int,
        scan_time_minutes: float,
        mass_intensity_pairs: np.ndarray,
    ) -> AddOutcome:
        """Add a scan given as a 2 x N array (row 0 = m/z, row 1 = intensity)."""
        pairs = np.asarray(mass_intensity_pairs, dtype=np.float64)
        if pairs.ndim != 2 or pairs.shape[0] != 2:
            raise ValueError(
                f"mass_intensity_pairs must have shape (2, n), got {pairs.shape}"
            )
        return self.add_scan_arrays(
            scan_number, ms_level, scan_time_minutes, pairs[0], pairs[1]
        )

    def add_scan_arrays(
        self,
        scan_number: int,
        ms_level: int,
        scan_time_minutes: float,
        mz: np.ndarray,
        intensity: np.ndarray,
        charge: Optional[np.ndarray] = None,
    ) -> AddOutcome:
        """Add a scan given as parallel arrays.

        Points with a non-finite m/z, or with intensity <= 0 or below
        ``options.min_intensity``, are dropped. A scan whose points are all dropped is still cached (with no
        ions) so that its scan number and elution time count towards the
        plot axes.
        """
        mz = np.asarray(mz, dtype=np.float64)
        intensity = np.asarray(intensity, dtype=np.float64)

        if len(mz) == 0:
            return AddOutcome.NO_DATA

        if len(intensity) != len(mz):
            raise ValueError(
                f"Scan {scan_number}: {len(mz)} m/z values but {len(intensity)} intensities"
            )

        if charge is None:
            charge = np.zeros(len(mz), dtype=np.uint8)
        else:
            charge = np.asarray(charge)
            if len(charge) != len(mz):
                raise ValueError(
                    f"Scan {scan_number}: {len(mz)} m/z values but {len(charge)} charges"
                )
            if np.any((charge < 0) | (charge > 255)):
                raise ValueError(
                    f"Scan {scan_number}: charges must be between 0 and 255, "
                    f"got {charge.min()} to {charge.max()}"
                )
            charge = charge.astype(np.uint8)

        mz, intensity, charge = self._sort_by_mz(mz, intensity, charge)

        # NaN m/z or intensity never passes
        passes = np.isfinite(mz) & (intensity > 0) & (intensity >= self.options.min_intensity)
        mz = mz[passes]
        intensity = np.minimum(intensity[passes], MAX_CACHED_INTENSITY).astype(np.float32)
        charge = charge[passes]

        self._add_scan_check_data(scan_number, ms_level, scan_time_minutes, mz, intensity, charge)
        return AddOutcome.ADDED

    def add_scan_skip_filters(self, scan: Optional[ScanRecord]) -> AddOutcome:
        """Add a copy of an already filtered scan (no sorting, filtering or centroiding).

        The trim trigger still applies.
        """
        if scan is None or scan.ion_count <= 0:
            return AddOutcome.NO_DATA

        scan_copy = scan.copy()
        self._scans.append(scan_copy)
        self._points_cached += scan_copy.ion_count

        self._trim_if_needed()
        return AddOutcome.ADDED

    def _sort_by_mz(self, mz: np.ndarray, intensity: np.ndarray, charge: np.ndarray):
        out_of_order = np.flatnonzero(mz[1:] < mz[:-1])
        if len(out_of_order) == 0:
            return mz, intensity, charge

        # Disorder among zero-intensity points only is routine; anything else
        # is a data quality signal
        zero_only = np.all(intensity[out_of_order] == 0) and np.all(intensity[out_of_order + 1] == 0)
        if not zero_only:
            self._sorting_warn_count += 1
            if self._sorting_warn_count <= SORT_WARN_FIRST_N:
                logger.warning(
                    "Sorting m/z data (this typically shouldn't be required for Thermo data, "
                    "though can occur for high res Orbitrap data)"
                )
            elif self._sorting_warn_count % SORT_WARN_EVERY_N == 0:
                logger.warning(f"Sorting m/z data (i = {self._sorting_warn_count:,})")

        order = np.argsort(mz, kind="stable")
        return mz[order], intensity[order], charge[order]

    def _add_scan_check_data(
        self,
        scan_number: int,
        ms_level: int,
        scan_time_minutes: float,
        mz: np.ndarray,
        intensity: np.ndarray,
        charge: np.ndarray,
    ):
        resolution = self.options.mz_resolution
        if requires_centroiding(mz, resolution):
            mz, intensity, charge = centroid_ms_data(mz, intensity, charge, resolution)

        scan = ScanRecord(scan_number, ms_level, scan_time_minutes, mz, intensity, charge)

        if scan.ion_count > MAX_ALLOWABLE_ION_COUNT:
            self._spectra_exceeding_max_ion_count += 1

            if (self._spectra_exceeding_max_ion_count <= ION_CAP_WARN_FIRST_N
                    or scan.ion_count > self._max_ion_count_reported):
                logger.info(
                    f"Note: Scan {scan_number} has {scan.ion_count:,} ions; will only retain "
                    f"{MAX_ALLOWABLE_ION_COUNT:,} (trimmed "
                    f"{self._spectra_exceeding_max_ion_count:,} spectra)"
                )
                self._max_ion_count_reported = max(self._max_ion_count_reported, scan.ion_count)

            self._discard_data_to_limit_ion_count(scan, MAX_ALLOWABLE_ION_COUNT)

        self._scans.append(scan)
        self._points_cached += scan.ion_count

        self._trim_if_needed()

    # ------------------------------------------------------------------
    # Trimming
    # ------------------------------------------------------------------

    def _trim_if_needed(self):
        max_points = self.options.max_points_to_plot
        if self._points_cached <= max_points * TRIM_TRIGGER_MULTIPLIER:
            return

        # Only repeat the trim once the cache has grown by 10%
        if self._points_cached > self._points_cached_after_last_trim * TRIM_REARM_GROWTH_FACTOR:
            self.trim_cached_data(max_points, self.options.min_points_per_spectrum)

    def _discard_data_to_limit_ion_count(self, scan: ScanRecord, max_ion_count_to_retain: int):
        """Keep the ``max_ion_count_to_retain`` most intense ions of one scan."""
        if scan.ion_count <= max_ion_count_to_retain:
            return

        try:
            ranker = IonFilterRanker(max_ion_count_to_retain, initial_capacity=scan.ion_count)
            ranker.add_data_points(scan.intensity)
            ranker.filter_data()
            scan.compact(ranker.keep_mask())
        except Exception as exc:
            raise TrimError(
                f"Error limiting scan {scan.scan_number} to {max_ion_count_to_retain:,} ions: {exc}"
            ) from exc

    def trim_cached_data(self, target_data_point_count: int, min_points_per_spectrum: int):
        """Retain nominally the top ``target_data_point_count`` points across all scans.

        Scans with ``min_points_per_spectrum`` points or fewer are skipped.
        A scan that would keep fewer than ``min_points_per_spectrum`` points
        after the global cut instead keeps exactly its own top
        ``min_points_per_spectrum`` points.

        Raises:
            TrimError: filtering failed; the cache may be partially trimmed
        """
        points_before = self._points_cached

        try:
            eligible = [scan for scan in self._scans if scan.ion_count > min_points_per_spectrum]
            total_eligible = sum(scan.ion_count for scan in eligible)

            ranker = IonFilterRanker(target_data_point_count, initial_capacity=max(total_eligible, 1))
            for scan in eligible:
                ranker.add_data_points(scan.intensity)
            ranker.filter_data()
            keep = ranker.keep_mask()

            offset = 0
            for scan in eligible:
                scan_keep = keep[offset:offset + scan.ion_count]
                offset += scan.ion_count

                if np.count_nonzero(scan_keep) < min_points_per_spectrum:
                    # Too few points would remain; keep this scan's own top points
                    self._discard_data_to_limit_ion_count(scan, min_points_per_spectrum)
                else:
                    scan.compact(scan_keep)

                if (scan.capacity > SHRINK_MIN_CAPACITY
                        and scan.ion_count < scan.capacity * SHRINK_FILL_FRACTION):
                    scan.shrink_arrays()

        except TrimError:
            raise
        except Exception as exc:
            raise TrimError(f"Error trimming cached data: {exc}") from exc

        self._points_cached = sum(scan.ion_count for scan in self._scans)
        self._points_cached_after_last_trim = self._points_cached
        self._trim_count += 1

        logger.debug(
            f"Trimmed cached data from {points_before:,} to {self._points_cached:,} points "
            f"across {len(self._scans):,} scans"
        )

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def validate_ms_level(self):
        """If no scan reports an MS level, treat every scan as MS1."""
        if any(scan.ms_level > 0 for scan in self._scans):
            return
        for scan in self._scans:
            scan.update_ms_level(1)

    def compute_average_intensity_all_scans(self, ms_level_filter: int) -> float:
        """Mean intensity of the cached points (after trimming to the plot target).

        Args:
            ms_level_filter: 0 for all scans, otherwise an exact MS level

        Returns:
            Mean intensity, or 0.0 when no points match
        """
        if ms_level_filter > 0:
            self.validate_ms_level()

        if self._points_cached > self.options.max_points_to_plot:
            self.trim_cached_data(self.options.max_points_to_plot, self.options.min_points_per_spectrum)

        intensities = [
            scan.intensity for scan in self._scans
            if matches_ms_level(scan, ms_level_filter) and scan.ion_count > 0
        ]
        if not intensities:
            return 0.0

        return float(np.concatenate(intensities).astype(np.float64).mean())
