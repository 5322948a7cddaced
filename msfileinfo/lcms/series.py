"""Projection of cached scans into plottable 2D series.

Two plot types are supported:

- m/z vs. scan number, one series, coloured by intensity. The colour scale
  starts at the median intensity (not the minimum) so that the bulk of
  low-level noise does not wash out the gradient.
- Monoisotopic mass vs. scan number, one series per charge state, each in a
  fixed colour. Used for deisotoped data, where callers store monoisotopic
  masses in the scans' m/z arrays.

The output is renderer-agnostic: labelled point sets, axis ranges and
annotation strings. Rasterization happens in ``msfileinfo.plotting``.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from msfileinfo.constants import (
    CHARGE_COLORS,
    CHARGE_PLOT_DENSE_POINT_THRESHOLD,
    CHARGE_PLOT_MARKER_SIZE_DENSE,
    CHARGE_PLOT_MARKER_SIZE_VERY_DENSE,
    CHARGE_PLOT_MARKER_SIZES,
    DEFAULT_CHARGE_COLOR,
    DEFAULT_PALETTE,
    GRADIENT_PALETTES,
    MZ_AXIS_ROUNDING,
    MZ_PLOT_MARKER_SIZE_DENSE,
    MZ_PLOT_MARKER_SIZES,
    SCAN_AXIS_ROUNDING,
)
from .accumulator import ScanAccumulator, matches_ms_level


@dataclass
class PlotSeries:
    """One labelled point set."""

    title: str
    x: np.ndarray
    y: np.ndarray
    values: Optional[np.ndarray] = None  # colour dimension (intensity)
    marker_size: float = 1.0
    color: Optional[str] = None          # fixed colour; None = colour by value
    style: str = "scatter"               # "scatter" or "line"

    @property
    def point_count(self) -> int:
        return len(self.x)

    def points(self) -> List[Tuple[float, float, Optional[float]]]:
        """(x, y, value) tuples."""
        if self.values is None:
            return [(float(x), float(y), None) for x, y in zip(self.x, self.y)]
        return [
            (float(x), float(y), float(v))
            for x, y, v in zip(self.x, self.y, self.values)
        ]


@dataclass
class AxisRange:
    x_min: float
    x_max: float
    y_min: float
    y_max: float


@dataclass
class DataExtents:
    """Observed ranges of the points and scans included in a series."""

    min_mz: float = math.inf
    max_mz: float = 0.0
    min_scan: int = 0
    max_scan: int = 0
    scan_time_max: float = 0.0


@dataclass
class MzVsScanSeries:
    series: PlotSeries
    extents: DataExtents
    color_scale_min: float = 0.0  # median intensity
    color_scale_max: float = 0.0
    average_intensity: float = 0.0


@dataclass
class ChargeSeriesSet:
    series: List[PlotSeries]
    extents: DataExtents
    max_charge: int = 1

    @property
    def total_points(self) -> int:
        return sum(s.point_count for s in self.series)


@dataclass
class PlotData:
    """Everything a renderer needs to draw one plot."""

    title: str
    x_label: str = "LC Scan Number"
    y_label: str = "m/z"
    series: List[PlotSeries] = field(default_factory=list)
    axis_range: Optional[AxisRange] = None
    color_scale_min: Optional[float] = None
    color_scale_max: Optional[float] = None
    palette: Optional[str] = None
    annotation_bottom_left: str = ""
    annotation_bottom_right: str = ""
    points_plotted: int = 0
    plotting_deisotoped_data: bool = False
    gradients: Tuple[str, ...] = ()

    @property
    def series_count(self) -> int:
        return len(self.series)

    @property
    def is_empty(self) -> bool:
        return self.series_count == 0


def color_for_charge(charge: int) -> str:
    return CHARGE_COLORS.get(int(charge), DEFAULT_CHARGE_COLOR)


def compute_median(values: np.ndarray) -> float:
    """Median; mean of the two middle values for an even count, 0 when empty."""
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=np.float64)))


def format_elution_time_caption(scan_time_max: float) -> str:
    """Elapsed-time caption with precision scaled to magnitude.

    Examples:
        >>> format_elution_time_caption(1.234)
        '1.23 minutes'
        >>> format_elution_time_caption(5.31)
        '5.3 minutes'
        >>> format_elution_time_caption(95.6)
        '96 minutes'
    """
    if scan_time_max < 2:
        return f"{scan_time_max:.2f} minutes"
    if scan_time_max < 10:
        return f"{scan_time_max:.1f} minutes"
    return f"{scan_time_max:.0f} minutes"


def mz_plot_marker_size(scan_count: int) -> float:
    for scan_limit, size in MZ_PLOT_MARKER_SIZES:
        if scan_count < scan_limit:
            return size
    return MZ_PLOT_MARKER_SIZE_DENSE


def charge_plot_marker_size(scan_count: int, total_points: int) -> float:
    for scan_limit, size in CHARGE_PLOT_MARKER_SIZES:
        if scan_count < scan_limit:
            return size
    if total_points < CHARGE_PLOT_DENSE_POINT_THRESHOLD:
        return CHARGE_PLOT_MARKER_SIZE_DENSE
    return CHARGE_PLOT_MARKER_SIZE_VERY_DENSE


class SeriesBuilder:
    """Builds plot series from a ScanAccumulator.

    Parameters
    ----------
    accumulator : ScanAccumulator
        Source of cached scans; its options drive the plot layout
    """

    def __init__(self, accumulator: ScanAccumulator):
        self.accumulator = accumulator

    @property
    def options(self):
        return self.accumulator.options

    def _collect(self, ms_level_filter: int):
        """Concatenate scan number, m/z, intensity and charge of matching scans."""
        scan_numbers = []
        mzs = []
        intensities = []
        charges = []
        extents = DataExtents()
        min_scan = None
        max_scan = None

        for scan in self.accumulator.scans:
            if not matches_ms_level(scan, ms_level_filter):
                continue

            if scan.ion_count > 0:
                scan_numbers.append(np.full(scan.ion_count, scan.scan_number, dtype=np.int64))
                mzs.append(scan.mz)
                intensities.append(scan.intensity)
                charges.append(scan.charges)

            extents.scan_time_max = max(extents.scan_time_max, scan.scan_time_minutes)
            min_scan = scan.scan_number if min_scan is None else min(min_scan, scan.scan_number)
            max_scan = scan.scan_number if max_scan is None else max(max_scan, scan.scan_number)

        if scan_numbers:
            x = np.concatenate(scan_numbers)
            y = np.concatenate(mzs)
            values = np.concatenate(intensities).astype(np.float64)
            charge = np.concatenate(charges)
            extents.min_mz = float(y.min())
            extents.max_mz = float(y.max())
        else:
            x = np.empty(0, dtype=np.int64)
            y = np.empty(0, dtype=np.float64)
            values = np.empty(0, dtype=np.float64)
            charge = np.empty(0, dtype=np.uint8)

        extents.min_scan = min_scan if min_scan is not None else 0
        extents.max_scan = max_scan if max_scan is not None else 0
        return x, y, values, charge, extents

    def build_mz_vs_scan_series(self, ms_level_filter: int, title: str = "") -> MzVsScanSeries:
        """One (scan, m/z) series with intensity as the colour value.

        Args:
            ms_level_filter: 0 for all scans, otherwise an exact MS level
            title: Series title

        Returns:
            MzVsScanSeries; the colour scale runs from the median to the max intensity
        """
        x, y, values, _, extents = self._collect(ms_level_filter)

        series = PlotSeries(
            title=title,
            x=x,
            y=y,
            values=values,
            marker_size=mz_plot_marker_size(self.accumulator.scan_count_cached),
        )

        if len(values) == 0:
            return MzVsScanSeries(series=series, extents=extents)

        return MzVsScanSeries(
            series=series,
            extents=extents,
            color_scale_min=compute_median(values),
            color_scale_max=float(values.max()),
            average_intensity=float(values.mean()),
        )

    def build_mono_mass_vs_scan_series_by_charge(self, ms_level_filter: int) -> ChargeSeriesSet:
        """One (scan, monoisotopic mass) series per charge state.

        Charge states 0 through the highest observed charge are considered;
        charges without points produce no series.
        """
        x, y, values, charge, extents = self._collect(ms_level_filter)

        max_charge = max(1, int(charge.max())) if len(charge) > 0 else 1
        marker_size = charge_plot_marker_size(self.accumulator.scan_count_cached, len(x))

        series = []
        for z in range(max_charge + 1):
            in_charge = charge == z
            if not np.any(in_charge):
                continue
            series.append(PlotSeries(
                title=f"{z}+",
                x=x[in_charge],
                y=y[in_charge],
                values=values[in_charge],
                marker_size=marker_size,
                color=color_for_charge(z),
            ))

        return ChargeSeriesSet(series=series, extents=extents, max_charge=max_charge)

    def build_plot(self, title: str, ms_level_filter: int, skip_trim: bool = False) -> PlotData:
        """Build the complete 2D plot description.

        When ``plotting_deisotoped_data`` is set, plots monoisotopic mass vs.
        scan number coloured by charge; otherwise m/z vs. scan number coloured
        by intensity.

        Args:
            title: Plot title
            ms_level_filter: 0 for all scans, 1 for MS1, 2 for MS2, etc.
            skip_trim: Skip trimming the cache to ``max_points_to_plot`` (set
                for the second and later plots built from the same cache)

        Returns:
            PlotData; empty (no series) when nothing is plottable
        """
        options = self.options
        deisotoped = options.plotting_deisotoped_data
        y_label = "Monoisotopic Mass" if deisotoped else "m/z"

        if not skip_trim and self.accumulator.points_cached > options.max_points_to_plot:
            # May still leave more than max_points_to_plot; see trim_cached_data
            self.accumulator.trim_cached_data(options.max_points_to_plot, options.min_points_per_spectrum)

        color_scale_min = None
        color_scale_max = None
        palette = None

        if deisotoped:
            charge_set = self.build_mono_mass_vs_scan_series_by_charge(ms_level_filter)
            series = charge_set.series
            extents = charge_set.extents
            max_y_to_use = options.max_mono_mass_for_deisotoped_plot
        else:
            mz_series = self.build_mz_vs_scan_series(ms_level_filter, title)
            series = [mz_series.series] if mz_series.series.point_count > 0 else []
            extents = mz_series.extents
            color_scale_min = mz_series.color_scale_min
            color_scale_max = mz_series.color_scale_max
            palette = DEFAULT_PALETTE
            max_y_to_use = math.inf

        points_to_plot = sum(int(np.count_nonzero(s.y < max_y_to_use)) for s in series)
        if points_to_plot == 0:
            return PlotData(title=title, y_label=y_label, plotting_deisotoped_data=deisotoped)

        axis_range = self._compute_axis_range(extents, max_y_to_use)

        annotation_bottom_right = ""
        if extents.scan_time_max > 0:
            annotation_bottom_right = format_elution_time_caption(extents.scan_time_max)

        return PlotData(
            title=title,
            y_label=y_label,
            series=series,
            axis_range=axis_range,
            color_scale_min=color_scale_min,
            color_scale_max=color_scale_max,
            palette=palette,
            annotation_bottom_left=f"{points_to_plot:,} points plotted",
            annotation_bottom_right=annotation_bottom_right,
            points_plotted=points_to_plot,
            plotting_deisotoped_data=deisotoped,
            gradients=GRADIENT_PALETTES if options.test_gradient_color_schemes else (),
        )

    def _compute_axis_range(self, extents: DataExtents, max_y_to_use: float) -> AxisRange:
        # Scan axis to multiples of 10, m/z axis to multiples of 100
        min_scan = max(0, math.floor(extents.min_scan / SCAN_AXIS_ROUNDING) * SCAN_AXIS_ROUNDING)
        max_scan = math.ceil(extents.max_scan / SCAN_AXIS_ROUNDING) * SCAN_AXIS_ROUNDING
        min_mz = math.floor(extents.min_mz / MZ_AXIS_ROUNDING) * MZ_AXIS_ROUNDING
        max_mz = math.ceil(extents.max_mz / MZ_AXIS_ROUNDING) * MZ_AXIS_ROUNDING

        x_min = min_scan if self.options.use_observed_min_scan else 0
        x_max = max_scan if max_scan != 0 else 1

        if abs(x_min - x_max) < 0.01:
            x_min, x_max = x_min - 1, x_min + 1
        elif min_scan == max_scan:
            x_min, x_max = min_scan - 1, min_scan + 1

        y_min = min_mz
        y_max = min(max_mz, max_y_to_use)
        if abs(y_max - y_min) < 0.01:
            y_min, y_max = y_min - 1, y_min + 1

        return AxisRange(x_min=x_min, x_max=x_max, y_min=y_min, y_max=y_max)
