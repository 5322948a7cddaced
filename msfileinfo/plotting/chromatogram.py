"""TIC and BPI chromatogram plots.

Tracks, per scan, the total ion current (sum of intensities) and the base
peak intensity (largest intensity), then plots them against scan number:

- ``<dataset>_BPI_MS.png``   BPI of MS1 scans
- ``<dataset>_BPI_MSn.png``  BPI of MS2 and higher scans
- ``<dataset>_TIC.png``      TIC of all scans
"""

import logging
import math
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from msfileinfo.constants import CHROMATOGRAM_INTENSITY_HEADROOM, SCAN_AXIS_ROUNDING
from msfileinfo.lcms.series import AxisRange, PlotData, PlotSeries
from msfileinfo.stats.scan_stats import ScanStatsEntry
from .recent_files import OutputFileInfo, RecentFiles
from .renderer import ImageFormat, PlotRenderer

logger = logging.getLogger(__name__)

CHROMATOGRAM_WIDTH = 1024
CHROMATOGRAM_HEIGHT = 600


class ChromatogramKind(Enum):
    TIC = "TIC"
    BPI = "BPI"


class ChromatogramFileType(Enum):
    TIC = 0
    BPI_MS = 1
    BPI_MSN = 2


def compute_tic_and_bpi(intensities: np.ndarray) -> Tuple[float, float]:
    """Total ion current and base peak intensity of one spectrum.

    Returns:
        (tic, bpi); (0.0, 0.0) for an empty spectrum
    """
    intensities = np.asarray(intensities, dtype=np.float64)
    if len(intensities) == 0:
        return 0.0, 0.0
    return float(intensities.sum()), float(intensities.max())


class ChromatogramInfo:
    """Growable per-scan arrays: scan number, elution time, intensity, MS level."""

    def __init__(self, initial_capacity: int = 10):
        self._initial_capacity = max(initial_capacity, 1)
        self.initialize()

    def initialize(self):
        self.scan_count = 0
        self._scan_num = np.zeros(self._initial_capacity, dtype=np.int64)
        self._scan_time = np.zeros(self._initial_capacity, dtype=np.float64)
        self._intensity = np.zeros(self._initial_capacity, dtype=np.float64)
        self._ms_level = np.zeros(self._initial_capacity, dtype=np.int32)

    def add_point(self, scan_number: int, ms_level: int, scan_time_minutes: float, intensity: float):
        if self.scan_count >= len(self._scan_num):
            capacity = len(self._scan_num) * 2
            self._scan_num = np.resize(self._scan_num, capacity)
            self._scan_time = np.resize(self._scan_time, capacity)
            self._intensity = np.resize(self._intensity, capacity)
            self._ms_level = np.resize(self._ms_level, capacity)

        i = self.scan_count
        self._scan_num[i] = scan_number
        self._scan_time[i] = scan_time_minutes
        self._intensity[i] = intensity
        self._ms_level[i] = ms_level
        self.scan_count += 1

    @property
    def scan_numbers(self) -> np.ndarray:
        return self._scan_num[:self.scan_count]

    @property
    def scan_times(self) -> np.ndarray:
        return self._scan_time[:self.scan_count]

    @property
    def intensities(self) -> np.ndarray:
        return self._intensity[:self.scan_count]

    @property
    def ms_levels(self) -> np.ndarray:
        return self._ms_level[:self.scan_count]

    def validate_ms_level(self):
        """If no scan reports an MS level, treat every scan as MS1."""
        if not np.any(self.ms_levels > 0):
            self._ms_level[:self.scan_count] = 1

    def level_mask(self, ms_level_filter: int) -> np.ndarray:
        """0 = all scans, 2 = every level >= 2, otherwise an exact level."""
        levels = self.ms_levels
        if ms_level_filter == 0:
            return np.ones(self.scan_count, dtype=np.bool_)
        if ms_level_filter == 2:
            return levels >= 2
        return levels == ms_level_filter


class TICandBPIPlotter:
    """Collects TIC/BPI values per scan and saves the chromatogram plots.

    Parameters
    ----------
    renderer : PlotRenderer, optional
        Rendering backend (defaults to 1024 x 600)
    """

    def __init__(self, renderer: Optional[PlotRenderer] = None):
        self.renderer = renderer if renderer is not None else PlotRenderer(
            width=CHROMATOGRAM_WIDTH, height=CHROMATOGRAM_HEIGHT
        )
        self._bpi = ChromatogramInfo()
        self._tic = ChromatogramInfo()
        self._recent_files = RecentFiles()

    @property
    def scan_count(self) -> int:
        return self._tic.scan_count

    def add_data(self, scan_number: int, ms_level: int, scan_time_minutes: float, bpi: float, tic: float):
        self._bpi.add_point(scan_number, ms_level, scan_time_minutes, bpi)
        self._tic.add_point(scan_number, ms_level, scan_time_minutes, tic)

    def add_scan_intensities(self, scan_number: int, ms_level: int, scan_time_minutes: float,
                             intensities: np.ndarray):
        """Compute TIC and BPI from a spectrum's intensities and record them."""
        tic, bpi = compute_tic_and_bpi(intensities)
        self.add_data(scan_number, ms_level, scan_time_minutes, bpi, tic)

    def add_scan_stats(self, entry: ScanStatsEntry):
        """Record the TIC and BPI already computed for a scan stats entry."""
        self.add_data(entry.scan_number, entry.scan_type, entry.elution_time,
                      entry.base_peak_intensity, entry.total_ion_intensity)

    def _chromatogram(self, kind: ChromatogramKind) -> ChromatogramInfo:
        return self._tic if kind is ChromatogramKind.TIC else self._bpi

    def build_plot(self, kind: ChromatogramKind, title: str, ms_level_filter: int) -> PlotData:
        """Intensity vs. scan number line plot; empty PlotData when no scan matches."""
        data = self._chromatogram(kind)
        mask = data.level_mask(ms_level_filter)

        x = data.scan_numbers[mask]
        y = data.intensities[mask]
        if len(x) == 0:
            return PlotData(title=title, y_label="Intensity")

        max_scan = math.ceil(int(x.max()) / SCAN_AXIS_ROUNDING) * SCAN_AXIS_ROUNDING
        max_intensity = math.ceil(float(y.max()) * CHROMATOGRAM_INTENSITY_HEADROOM)
        scan_time_max = float(data.scan_times[mask].max())

        series = PlotSeries(title=title, x=x, y=y, color="black", style="line")

        return PlotData(
            title=title,
            y_label="Intensity",
            series=[series],
            axis_range=AxisRange(
                x_min=0,
                x_max=max_scan if max_scan > 0 else 1,
                y_min=0,
                y_max=max_intensity if max_intensity > 0 else 1,
            ),
            annotation_bottom_right=f"{scan_time_max:.0f} minutes" if scan_time_max > 0 else "",
            points_plotted=len(x),
        )

    def save_tic_and_bpi_plot_files(
        self,
        dataset_name: str,
        output_dir: Union[str, Path],
        image_format: ImageFormat = ImageFormat.PNG,
    ) -> bool:
        """Write the BPI (MS1, MSn) and TIC plots; plots without data are skipped.

        Returns:
            True on success, False if rendering or writing failed
        """
        self._recent_files.clear()
        output_dir = Path(output_dir)
        ext = image_format.extension

        plots = (
            (ChromatogramKind.BPI, f"{dataset_name} - BPI - MS Spectra", 1,
             f"{dataset_name}_BPI_MS{ext}", ChromatogramFileType.BPI_MS),
            (ChromatogramKind.BPI, f"{dataset_name} - BPI - MS2 Spectra", 2,
             f"{dataset_name}_BPI_MSn{ext}", ChromatogramFileType.BPI_MSN),
            (ChromatogramKind.TIC, f"{dataset_name} - TIC - All Spectra", 0,
             f"{dataset_name}_TIC{ext}", ChromatogramFileType.TIC),
        )

        try:
            self._bpi.validate_ms_level()
            self._tic.validate_ms_level()

            for kind, title, ms_level_filter, file_name, file_type in plots:
                plot = self.build_plot(kind, title, ms_level_filter)
                if plot.is_empty:
                    continue
                path = output_dir / file_name
                self.renderer.save(plot, path, image_format)
                self._recent_files.add(path, file_type)

        except (OSError, ValueError) as exc:
            logger.error(f"Error saving TIC and BPI plots for {dataset_name}: {exc}")
            return False

        return True

    def get_recent_file_info(self, file_type: ChromatogramFileType) -> Optional[OutputFileInfo]:
        return self._recent_files.get(file_type)

    def reset(self):
        self._bpi.initialize()
        self._tic.initialize()
        self._recent_files.clear()
