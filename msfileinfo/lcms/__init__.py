"""LC-MS scan accumulation and 2D plot series.

This module provides:
- FilterOptions: per-session reduction and plot settings
- ScanRecord: parallel m/z / intensity / charge arrays for one scan
- ScanAccumulator: streaming, memory-bounded scan cache with mid-stream trimming
- SeriesBuilder: m/z vs. scan and mono mass vs. scan (by charge) series
"""

from .options import FilterOptions

from .scan_data import ScanRecord

from .accumulator import (
    AddOutcome,
    ScanAccumulator,
    TrimError,
    matches_ms_level,
)

from .series import (
    AxisRange,
    ChargeSeriesSet,
    DataExtents,
    MzVsScanSeries,
    PlotData,
    PlotSeries,
    SeriesBuilder,
    charge_plot_marker_size,
    color_for_charge,
    compute_median,
    format_elution_time_caption,
    mz_plot_marker_size,
)

__all__ = [
    # Options
    'FilterOptions',

    # Scan cache
    'ScanRecord',
    'AddOutcome',
    'ScanAccumulator',
    'TrimError',
    'matches_ms_level',

    # Series
    'AxisRange',
    'ChargeSeriesSet',
    'DataExtents',
    'MzVsScanSeries',
    'PlotData',
    'PlotSeries',
    'SeriesBuilder',
    'charge_plot_marker_size',
    'color_for_charge',
    'compute_median',
    'format_elution_time_caption',
    'mz_plot_marker_size',
]
