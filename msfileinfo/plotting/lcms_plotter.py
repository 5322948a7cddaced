"""LC-MS 2D plot generation for a dataset.

LCMSDataPlotter ties the pieces together for one dataset: scans are pushed
into a ScanAccumulator while the reader runs, and ``save_2d_plots`` builds the
MS1 and MS2 plots with a SeriesBuilder and writes them through a PlotRenderer.

Output files:
- ``<dataset>_<addon>LCMS<mode>.png``      MS1 scans (trims the cache first)
- ``<dataset>_<addon>LCMS_MSn<mode>.png``  MS2 scans (reuses the trimmed cache)

Plots without data points are skipped.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from msfileinfo.lcms import (
    AddOutcome,
    FilterOptions,
    ScanAccumulator,
    ScanRecord,
    SeriesBuilder,
    TrimError,
)
from .recent_files import OutputFileInfo, RecentFiles
from .renderer import ImageFormat, PlotRenderer

logger = logging.getLogger(__name__)


class OutputFileType(Enum):
    LCMS = 0
    LCMS_MSN = 1


class LCMSDataPlotter:
    """Accumulates scans for one dataset and saves its 2D LC-MS plots.

    Parameters
    ----------
    options : FilterOptions, optional
        Reduction and plot settings
    renderer : PlotRenderer, optional
        Rendering backend (defaults to a 1024 x 700 matplotlib renderer)

    Examples
    --------
    >>> plotter = LCMSDataPlotter(FilterOptions(max_points_to_plot=50_000))
    >>> for scan_number, ms_level, minutes, ions in reader:   # doctest: +SKIP
    ...     plotter.add_scan(scan_number, ms_level, minutes, ions)
    >>> plotter.save_2d_plots("QC_Shew_23_01", "output")     # doctest: +SKIP
    True
    """

    def __init__(self, options: Optional[FilterOptions] = None, renderer: Optional[PlotRenderer] = None):
        self.accumulator = ScanAccumulator(options)
        self.series_builder = SeriesBuilder(self.accumulator)
        self.renderer = renderer if renderer is not None else PlotRenderer()
        self._recent_files = RecentFiles()

    @property
    def options(self) -> FilterOptions:
        return self.accumulator.options

    @property
    def scan_count_cached(self) -> int:
        return self.accumulator.scan_count_cached

    def add_scan(self, scan_number: int, ms_level: int, scan_time_minutes: float,
                 ions: Sequence[Sequence[float]]) -> AddOutcome:
        return self.accumulator.add_scan(scan_number, ms_level, scan_time_minutes, ions)

    def add_scan_arrays(self, scan_number: int, ms_level: int, scan_time_minutes: float,
                        mz: np.ndarray, intensity: np.ndarray,
                        charge: Optional[np.ndarray] = None) -> AddOutcome:
        return self.accumulator.add_scan_arrays(
            scan_number, ms_level, scan_time_minutes, mz, intensity, charge
        )

    def add_scan_2d(self, scan_number: int, ms_level: int, scan_time_minutes: float,
                    mass_intensity_pairs: np.ndarray) -> AddOutcome:
        return self.accumulator.add_scan_2d(scan_number, ms_level, scan_time_minutes, mass_intensity_pairs)

    def add_scan_skip_filters(self, scan: Optional[ScanRecord]) -> AddOutcome:
        return self.accumulator.add_scan_skip_filters(scan)

    def compute_average_intensity_all_scans(self, ms_level_filter: int) -> float:
        return self.accumulator.compute_average_intensity_all_scans(ms_level_filter)

    def get_cached_scan_by_index(self, index: int) -> Optional[ScanRecord]:
        return self.accumulator.get_cached_scan_by_index(index)

    def get_recent_file_info(self, file_type: OutputFileType) -> Optional[OutputFileInfo]:
        """File written for ``file_type`` by the last ``save_2d_plots`` call, if any."""
        return self._recent_files.get(file_type)

    def clear_recent_file_info(self):
        self._recent_files.clear()

    def reset(self):
        self.accumulator.reset()
        self.clear_recent_file_info()

    def save_2d_plots(
        self,
        dataset_name: str,
        output_dir: Union[str, Path],
        file_name_suffix_addon: str = "",
        scan_mode_suffix_addon: str = "",
        image_format: ImageFormat = ImageFormat.PNG,
    ) -> bool:
        """Write the MS1 and MS2 plots for the cached scans.

        Args:
            dataset_name: Dataset name; used in titles and file names
            output_dir: Directory for the image files
            file_name_suffix_addon: Inserted before "LCMS" in file names
            scan_mode_suffix_addon: Appended after "LCMS" / "LCMS_MSn"
            image_format: PNG or JPG

        Returns:
            True on success (including when there was nothing to plot), False
            if trimming, rendering or writing failed
        """
        self.clear_recent_file_info()
        output_dir = Path(output_dir)
        file_name_suffix_addon = file_name_suffix_addon or ""
        scan_mode_suffix_addon = scan_mode_suffix_addon or ""
        prefix = f"{dataset_name}_{file_name_suffix_addon}"

        try:
            # Readers that don't report MS levels leave every scan at level 0
            self.accumulator.validate_ms_level()

            plot = self.series_builder.build_plot(
                f"{dataset_name} - {self.options.ms1_plot_title}", ms_level_filter=1, skip_trim=False
            )
            if not plot.is_empty:
                path = output_dir / f"{prefix}LCMS{scan_mode_suffix_addon}{image_format.extension}"
                self.renderer.save(plot, path, image_format)
                self._recent_files.add(path, OutputFileType.LCMS)

            plot = self.series_builder.build_plot(
                f"{dataset_name} - {self.options.ms2_plot_title}", ms_level_filter=2, skip_trim=True
            )
            if not plot.is_empty:
                path = output_dir / f"{prefix}LCMS_MSn{scan_mode_suffix_addon}{image_format.extension}"
                self.renderer.save(plot, path, image_format)
                self._recent_files.add(path, OutputFileType.LCMS_MSN)

        except (TrimError, OSError, ValueError) as exc:
            logger.error(f"Error saving LC-MS 2D plots for {dataset_name}: {exc}")
            return False

        return True
