"""Per-scan stats records and dataset-level summary containers."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

import numpy as np


@dataclass
class ExtendedScanInfo:
    """Optional instrument-reported scan details, written verbatim to the Ex file."""

    ion_injection_time: str = ""
    scan_segment: str = ""
    scan_event: str = ""
    charge_state: str = ""
    monoisotopic_mz: str = ""
    collision_mode: str = ""
    scan_filter_text: str = ""


@dataclass
class ScanStatsEntry:
    """Summary values for one spectrum.

    ``scan_type`` is the MS level (1 for MS, 2 for MS2, ...). ``ion_count``
    counts ions with positive intensity; ``ion_count_raw`` counts every ion
    the reader reported.
    """

    scan_number: int
    scan_type: int
    scan_type_name: str = ""
    scan_filter_text: str = ""
    elution_time: float = 0.0
    total_ion_intensity: float = 0.0
    base_peak_intensity: float = 0.0
    base_peak_mz: float = 0.0
    base_peak_signal_to_noise_ratio: float = 0.0
    ion_count: int = 0
    ion_count_raw: int = 0
    mz_min: float = 0.0
    mz_max: float = 0.0
    drift_time_msec: float = 0.0
    extended_scan_info: ExtendedScanInfo = field(default_factory=ExtendedScanInfo)

    @classmethod
    def from_spectrum(
        cls,
        scan_number: int,
        scan_type: int,
        elution_time: float,
        mz: np.ndarray,
        intensity: np.ndarray,
        scan_type_name: str = "",
        scan_filter_text: str = "",
    ) -> "ScanStatsEntry":
        """Compute TIC, base peak and ion counts from a raw spectrum.

        Args:
            scan_number: Scan number
            scan_type: MS level
            elution_time: Scan time, in minutes
            mz: m/z values (any order)
            intensity: Intensities, parallel to ``mz``
            scan_type_name: Reader-specific name, e.g. "HMSn"
            scan_filter_text: Reader-specific filter string

        Returns:
            New entry; all intensity values are 0 for an empty spectrum
        """
        mz = np.asarray(mz, dtype=np.float64)
        intensity = np.asarray(intensity, dtype=np.float64)
        if len(mz) != len(intensity):
            raise ValueError(
                f"Scan {scan_number}: {len(mz)} m/z values but {len(intensity)} intensities"
            )

        entry = cls(
            scan_number=scan_number,
            scan_type=scan_type,
            scan_type_name=scan_type_name,
            scan_filter_text=scan_filter_text,
            elution_time=elution_time,
            ion_count_raw=len(mz),
        )
        if len(mz) == 0:
            return entry

        base_peak = int(np.argmax(intensity))
        entry.total_ion_intensity = float(intensity.sum())
        entry.base_peak_intensity = float(intensity[base_peak])
        entry.base_peak_mz = float(mz[base_peak])
        entry.ion_count = int(np.count_nonzero(intensity > 0))
        entry.mz_min = float(mz.min())
        entry.mz_max = float(mz.max())
        return entry


@dataclass
class SummaryStatDetails:
    """Scan count, TIC and BPI maxima and medians for one group of scans (MS or MSn)."""

    scan_count: int = 0
    tic_max: float = 0.0
    bpi_max: float = 0.0
    tic_median: float = 0.0
    bpi_median: float = 0.0


@dataclass
class DatasetSummaryStats:
    elution_time_max: float = 0.0
    ms_stats: SummaryStatDetails = field(default_factory=SummaryStatDetails)
    msn_stats: SummaryStatDetails = field(default_factory=SummaryStatDetails)

    # "<scan type name>::###::<filter text>" -> scan count
    scan_type_stats: Dict[str, int] = field(default_factory=dict)

    @property
    def scan_count(self) -> int:
        return self.ms_stats.scan_count + self.msn_stats.scan_count


@dataclass
class DatasetFileInfo:
    """Acquisition metadata supplied by the instrument file reader."""

    dataset_name: str = ""
    dataset_id: int = 0
    acq_time_start: Optional[datetime] = None
    acq_time_end: Optional[datetime] = None
    file_size_bytes: int = 0
    scan_count: int = 0

    @property
    def acq_time_minutes(self) -> float:
        if self.acq_time_start is None or self.acq_time_end is None:
            return 0.0
        return (self.acq_time_end - self.acq_time_start).total_seconds() / 60.0


@dataclass
class SampleInfo:
    sample_name: str = ""
    comment1: str = ""
    comment2: str = ""

    def has_data(self) -> bool:
        return bool(self.sample_name or self.comment1 or self.comment2)
