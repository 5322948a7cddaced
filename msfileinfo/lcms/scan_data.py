"""Per-scan ion storage for the LC-MS accumulator.

A ScanRecord holds three parallel arrays (m/z, intensity, charge) plus the
scan's metadata. ``ion_count`` is the logical length: after in-place
compaction the arrays may be longer than ``ion_count``. Always use the
``mz`` / ``intensity`` / ``charges`` views (or slice with ``ion_count``),
never the full arrays.
"""

from typing import Optional

import numpy as np


class ScanRecord:
    """m/z, intensity and charge values for one scan.

    Parameters
    ----------
    scan_number : int
        Scan number assigned by the reader
    ms_level : int
        1 for survey scans, >= 2 for fragmentation scans (0 = unknown)
    scan_time_minutes : float
        Elution time
    ions_mz : np.ndarray
        m/z values, ascending within the first ``ion_count`` entries
    ions_intensity : np.ndarray
        Intensities
    charge : np.ndarray, optional
        Charge states (0 = unassigned); zeros when omitted
    ion_count : int, optional
        Logical length; defaults to the array length
    """

    __slots__ = (
        "scan_number",
        "_ms_level",
        "scan_time_minutes",
        "ion_count",
        "ions_mz",
        "ions_intensity",
        "charge",
    )

    def __init__(
        self,
        scan_number: int,
        ms_level: int,
        scan_time_minutes: float,
        ions_mz: np.ndarray,
        ions_intensity: np.ndarray,
        charge: Optional[np.ndarray] = None,
        ion_count: Optional[int] = None,
    ):
        ions_mz = np.array(ions_mz, dtype=np.float64)
        ions_intensity = np.array(ions_intensity, dtype=np.float32)
        if charge is None:
            charge = np.zeros(len(ions_mz), dtype=np.uint8)
        else:
            charge = np.array(charge, dtype=np.uint8)

        if not len(ions_mz) == len(ions_intensity) == len(charge):
            raise ValueError(
                "m/z, intensity and charge arrays must have equal length "
                f"(got {len(ions_mz)}, {len(ions_intensity)}, {len(charge)})"
            )

        if ion_count is None:
            ion_count = len(ions_mz)
        if not 0 <= ion_count <= len(ions_mz):
            raise ValueError(f"ion_count {ion_count} outside 0..{len(ions_mz)}")

        self.scan_number = int(scan_number)
        self._ms_level = int(ms_level)
        self.scan_time_minutes = float(scan_time_minutes)
        self.ion_count = int(ion_count)
        self.ions_mz = ions_mz
        self.ions_intensity = ions_intensity
        self.charge = charge

    @property
    def ms_level(self) -> int:
        return self._ms_level

    def update_ms_level(self, new_ms_level: int):
        self._ms_level = int(new_ms_level)

    @property
    def capacity(self) -> int:
        """Allocated array length (>= ion_count)."""
        return len(self.ions_mz)

    @property
    def mz(self) -> np.ndarray:
        return self.ions_mz[:self.ion_count]

    @property
    def intensity(self) -> np.ndarray:
        return self.ions_intensity[:self.ion_count]

    @property
    def charges(self) -> np.ndarray:
        return self.charge[:self.ion_count]

    def compact(self, keep_mask: np.ndarray) -> int:
        """Keep only the flagged ions, copying in place.

        Args:
            keep_mask: Boolean flags for the first ``ion_count`` ions

        Returns:
            New ion count
        """
        keep_mask = np.asarray(keep_mask, dtype=np.bool_)
        if len(keep_mask) != self.ion_count:
            raise ValueError(
                f"Keep mask has {len(keep_mask)} entries; scan {self.scan_number} has {self.ion_count} ions"
            )

        new_count = int(np.count_nonzero(keep_mask))
        if new_count == self.ion_count:
            return new_count

        # Fancy indexing copies before assignment, so overlap is safe
        self.ions_mz[:new_count] = self.mz[keep_mask]
        self.ions_intensity[:new_count] = self.intensity[keep_mask]
        self.charge[:new_count] = self.charges[keep_mask]
        self.ion_count = new_count
        return new_count

    def shrink_arrays(self):
        """Release unused capacity beyond ``ion_count``."""
        if self.ion_count < self.capacity:
            self.ions_mz = self.ions_mz[:self.ion_count].copy()
            self.ions_intensity = self.ions_intensity[:self.ion_count].copy()
            self.charge = self.charge[:self.ion_count].copy()

    def copy(self) -> 'ScanRecord':
        return ScanRecord(
            self.scan_number,
            self.ms_level,
            self.scan_time_minutes,
            self.mz,
            self.intensity,
            self.charges,
        )

    def __len__(self) -> int:
        return self.ion_count

    def __repr__(self) -> str:
        return (
            f"ScanRecord(scan_number={self.scan_number}, ms_level={self.ms_level}, "
            f"scan_time_minutes={self.scan_time_minutes:.3f}, ion_count={self.ion_count})"
        )
