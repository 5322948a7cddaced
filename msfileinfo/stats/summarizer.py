"""Dataset-level scan stats: summary values and tab-delimited report files.

The reader loop that feeds the plotters also passes one ScanStatsEntry per
spectrum to a DatasetStatsSummarizer, which then writes:

- ``<dataset>_ScanStats.txt`` and ``<dataset>_ScanStatsEx.txt``: one row per scan
- ``MSFileInfo_DatasetStats.txt``: one row per dataset, appended across runs
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, List, Set, Tuple, Union

import numpy as np

from msfileinfo.constants import DATASET_STATS_TIME_FORMAT, SCAN_TYPE_STATS_SEP
from msfileinfo.lcms.series import compute_median
from .scan_stats import (
    DatasetFileInfo,
    DatasetSummaryStats,
    SampleInfo,
    ScanStatsEntry,
)

logger = logging.getLogger(__name__)

SCAN_STATS_COLUMNS = [
    "Dataset",
    "ScanNumber",
    "ScanTime",
    "ScanType",
    "TotalIonIntensity",
    "BasePeakIntensity",
    "BasePeakMZ",
    "BasePeakSignalToNoiseRatio",
    "IonCount",
    "IonCountRaw",
    "ScanTypeName",
]

SCAN_STATS_EX_COLUMNS = [
    "Dataset",
    "ScanNumber",
    "Ion Injection Time (ms)",
    "Scan Segment",
    "Scan Event",
    "Charge State",
    "Monoisotopic M/Z",
    "Collision Mode",
    "Scan Filter Text",
]

DATASET_STATS_COLUMNS = [
    "Dataset",
    "ScanCount",
    "ScanCountMS",
    "ScanCountMSn",
    "Elution_Time_Max",
    "AcqTimeMinutes",
    "StartTime",
    "EndTime",
    "FileSizeBytes",
    "SampleName",
    "Comment1",
    "Comment2",
]


def scan_type_key(scan_type_name: str, scan_filter_text: str) -> str:
    return f"{scan_type_name}{SCAN_TYPE_STATS_SEP}{scan_filter_text}"


def split_scan_type_key(key: str) -> Tuple[str, str, str]:
    """Split a scan type summary key.

    Returns:
        (scan_type, basic_scan_type, scan_filter_text); the basic scan type
        drops a prefix ending in a dash, e.g. "CID-HMSn" -> "HMSn"

    Examples:
        >>> split_scan_type_key("CID-HMSn::###::FTMS + p NSI d Full ms2")
        ('CID-HMSn', 'HMSn', 'FTMS + p NSI d Full ms2')
    """
    scan_type, sep, scan_filter_text = key.partition(SCAN_TYPE_STATS_SEP)
    if not sep:
        scan_filter_text = ""

    dash = scan_type.find("-")
    if 0 < dash < len(scan_type) - 1:
        basic_scan_type = scan_type[dash + 1:]
    else:
        basic_scan_type = scan_type

    return scan_type, basic_scan_type, scan_filter_text


def compute_scan_stats_summary(scan_stats: Iterable[ScanStatsEntry]) -> DatasetSummaryStats:
    """Scan counts, elution time max, and TIC/BPI max and median for MS and MSn scans.

    Scans with ``scan_type > 1`` count as MSn, everything else as MS.
    Non-finite TIC or BPI values are left out of the maxima and medians.
    """
    summary = DatasetSummaryStats()
    tic = {1: [], 2: []}
    bpi = {1: [], 2: []}

    for entry in scan_stats:
        group = 2 if entry.scan_type > 1 else 1
        details = summary.msn_stats if group == 2 else summary.ms_stats

        if np.isfinite(entry.elution_time) and entry.elution_time > summary.elution_time_max:
            summary.elution_time_max = float(entry.elution_time)

        if np.isfinite(entry.total_ion_intensity):
            details.tic_max = max(details.tic_max, float(entry.total_ion_intensity))
            tic[group].append(entry.total_ion_intensity)

        if np.isfinite(entry.base_peak_intensity):
            details.bpi_max = max(details.bpi_max, float(entry.base_peak_intensity))
            bpi[group].append(entry.base_peak_intensity)

        details.scan_count += 1

        key = scan_type_key(entry.scan_type_name, entry.scan_filter_text)
        summary.scan_type_stats[key] = summary.scan_type_stats.get(key, 0) + 1

    for group, details in ((1, summary.ms_stats), (2, summary.msn_stats)):
        details.tic_median = compute_median(np.array(tic[group], dtype=np.float64))
        details.bpi_median = compute_median(np.array(bpi[group], dtype=np.float64))

    return summary


def _format_intensity(value: float) -> str:
    return f"{value:.5g}"


def _format_time(value) -> str:
    return value.strftime(DATASET_STATS_TIME_FORMAT) if value is not None else ""


class DatasetStatsSummarizer:
    """Collects per-scan stats for one dataset and writes the stats files.

    Parameters
    ----------
    create_empty_scan_stats_files : bool, default=True
        When False, ``create_scan_stats_file`` writes nothing if no scans were added

    Examples
    --------
    >>> summarizer = DatasetStatsSummarizer()
    >>> summarizer.add_dataset_scan(ScanStatsEntry(1, 1, elution_time=0.5, total_ion_intensity=10.0))
    >>> summarizer.get_dataset_summary_stats().ms_stats.scan_count
    1
    """

    def __init__(self, create_empty_scan_stats_files: bool = True):
        self.create_empty_scan_stats_files = create_empty_scan_stats_files
        self.dataset_file_info = DatasetFileInfo()
        self.sample_info = SampleInfo()

        self._scan_numbers: Set[int] = set()
        self._scan_stats: List[ScanStatsEntry] = []
        self._summary = DatasetSummaryStats()
        self._summary_up_to_date = False

    @property
    def scan_stats(self) -> List[ScanStatsEntry]:
        return self._scan_stats

    def add_dataset_scan(self, entry: ScanStatsEntry):
        self._scan_numbers.add(entry.scan_number)
        self._scan_stats.append(entry)
        self._summary_up_to_date = False

    def has_scan_number(self, scan_number: int) -> bool:
        return scan_number in self._scan_numbers

    def update_dataset_scan_type(self, scan_number: int, scan_type: int, scan_type_name: str) -> bool:
        """Change the scan type of the first entry for ``scan_number``.

        Returns:
            False if no entry has that scan number
        """
        for entry in self._scan_stats:
            if entry.scan_number != scan_number:
                continue
            entry.scan_type = scan_type
            entry.scan_type_name = scan_type_name
            self._summary_up_to_date = False
            return True
        return False

    def get_dataset_summary_stats(self) -> DatasetSummaryStats:
        """Summary of the added scans; recomputed only after scans change."""
        if not self._summary_up_to_date:
            self._summary = compute_scan_stats_summary(self._scan_stats)
            self._summary_up_to_date = True
        return self._summary

    def create_scan_stats_file(self, scan_stats_file_path: Union[str, Path]) -> bool:
        """Write the scan stats file and, beside it, the ``<name>Ex.txt`` extended file.

        A DriftTime column is added when any scan reports a drift time.

        Returns:
            True on success (or when skipped for lack of scans), False if writing failed
        """
        if not self._scan_stats and not self.create_empty_scan_stats_files:
            logger.debug("No scan stats to write; skipping the scan stats files")
            return True

        path = Path(scan_stats_file_path)
        ex_path = path.with_name(f"{path.stem}Ex.txt")
        dataset_id = self.dataset_file_info.dataset_id

        include_drift_time = any(entry.drift_time_msec > 0 for entry in self._scan_stats)
        columns = SCAN_STATS_COLUMNS + (["DriftTime"] if include_drift_time else [])

        try:
            with open(path, 'w', newline='') as stats_file, open(ex_path, 'w', newline='') as ex_file:
                writer = csv.DictWriter(stats_file, fieldnames=columns, delimiter='\t')
                ex_writer = csv.DictWriter(ex_file, fieldnames=SCAN_STATS_EX_COLUMNS, delimiter='\t')
                writer.writeheader()
                ex_writer.writeheader()

                for entry in self._scan_stats:
                    row = {
                        "Dataset": dataset_id,
                        "ScanNumber": entry.scan_number,
                        "ScanTime": f"{entry.elution_time:.4f}",
                        "ScanType": entry.scan_type,
                        "TotalIonIntensity": _format_intensity(entry.total_ion_intensity),
                        "BasePeakIntensity": _format_intensity(entry.base_peak_intensity),
                        "BasePeakMZ": f"{entry.base_peak_mz:.4f}",
                        "BasePeakSignalToNoiseRatio": f"{entry.base_peak_signal_to_noise_ratio:.2f}",
                        "IonCount": entry.ion_count,
                        "IonCountRaw": entry.ion_count_raw,
                        "ScanTypeName": entry.scan_type_name,
                    }
                    if include_drift_time:
                        row["DriftTime"] = f"{entry.drift_time_msec:.4f}"
                    writer.writerow(row)

                    extended = entry.extended_scan_info
                    ex_writer.writerow({
                        "Dataset": dataset_id,
                        "ScanNumber": entry.scan_number,
                        "Ion Injection Time (ms)": extended.ion_injection_time,
                        "Scan Segment": extended.scan_segment,
                        "Scan Event": extended.scan_event,
                        "Charge State": extended.charge_state,
                        "Monoisotopic M/Z": extended.monoisotopic_mz,
                        "Collision Mode": extended.collision_mode,
                        "Scan Filter Text": extended.scan_filter_text,
                    })

        except OSError as exc:
            logger.error(f"Error writing scan stats file {path}: {exc}")
            return False

        logger.debug(f"Wrote {len(self._scan_stats):,} scans to {path.name}")
        return True

    def update_dataset_stats_text_file(self, dataset_name: str, dataset_stats_file_path: Union[str, Path]) -> bool:
        """Append this dataset's summary row, writing the header if the file is new.

        Returns:
            True on success, False if writing failed
        """
        path = Path(dataset_stats_file_path)
        summary = self.get_dataset_summary_stats()
        file_info = self.dataset_file_info

        row = {
            "Dataset": dataset_name,
            "ScanCount": summary.scan_count,
            "ScanCountMS": summary.ms_stats.scan_count,
            "ScanCountMSn": summary.msn_stats.scan_count,
            "Elution_Time_Max": f"{summary.elution_time_max:.2f}",
            "AcqTimeMinutes": f"{file_info.acq_time_minutes:.2f}",
            "StartTime": _format_time(file_info.acq_time_start),
            "EndTime": _format_time(file_info.acq_time_end),
            "FileSizeBytes": file_info.file_size_bytes,
            "SampleName": self.sample_info.sample_name,
            "Comment1": self.sample_info.comment1,
            "Comment2": self.sample_info.comment2,
        }

        try:
            write_header = not path.exists()
            with open(path, 'a', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=DATASET_STATS_COLUMNS, delimiter='\t')
                if write_header:
                    writer.writeheader()
                writer.writerow(row)

        except OSError as exc:
            logger.error(f"Error updating dataset stats file {path}: {exc}")
            return False

        return True

    def validate_ms2_mz_min(self, required_mz_min: float, max_percent_allowed_failed: float) -> Tuple[bool, str]:
        """Check that MS2 (or else MS3) spectra start below ``required_mz_min``.

        Used to catch reporter-ion datasets acquired with too high a low-mass cutoff.

        Returns:
            (is_valid, message); the message is empty when every spectrum passes
        """
        valid_ms2, count_ms2, message_ms2 = self._validate_msn_mz_min(2, required_mz_min, max_percent_allowed_failed)
        if count_ms2 > 0 and valid_ms2:
            return True, message_ms2

        valid_ms3, count_ms3, message_ms3 = self._validate_msn_mz_min(3, required_mz_min, max_percent_allowed_failed)
        if count_ms3 > 0 and valid_ms3:
            return True, message_ms3

        if count_ms2 > 0 and count_ms3 == 0:
            return False, message_ms2
        if count_ms2 == 0 and count_ms3 > 0:
            return False, message_ms3
        return False, f"{message_ms2}; {message_ms3}"

    def _validate_msn_mz_min(self, ms_level: int, required_mz_min: float,
                             max_percent_allowed_failed: float) -> Tuple[bool, int, str]:
        spectra_type = {2: "MS2", 3: "MS3"}.get(ms_level, "MSn")

        with_data = [
            entry for entry in self._scan_stats
            if entry.scan_type == ms_level and (entry.ion_count > 0 or entry.ion_count_raw > 0)
        ]
        if not with_data:
            return False, 0, f"None of the {spectra_type} spectra has data; cannot validate"

        invalid = sum(1 for entry in with_data if entry.mz_min > required_mz_min)
        if invalid == 0:
            return True, len(with_data), ""

        percent_invalid = invalid / len(with_data) * 100
        percent = f"{percent_invalid:.1f}" if percent_invalid < 10 else f"{percent_invalid:.0f}"
        message = (
            f"{percent}% of the {spectra_type} spectra have a minimum m/z value larger than "
            f"{required_mz_min:.1f} m/z ({invalid:,} / {len(with_data):,})"
        )
        return percent_invalid < max_percent_allowed_failed, len(with_data), message

    def clear_cached_data(self):
        self._scan_numbers.clear()
        self._scan_stats.clear()
        self._summary = DatasetSummaryStats()
        self._summary_up_to_date = False
        self.dataset_file_info = DatasetFileInfo()
        self.sample_info = SampleInfo()
        self.create_empty_scan_stats_files = True
