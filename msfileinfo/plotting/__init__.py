"""Rendering boundary and per-dataset plot generation.

This module provides:
- PlotRenderer / ImageFormat: matplotlib rendering of PlotData to PNG or JPG
- LCMSDataPlotter: scan accumulation plus MS1 / MS2 2D plot files
- TICandBPIPlotter: TIC and BPI chromatogram plot files
"""

from .renderer import (
    ImageFormat,
    PlotRenderer,
    render_to_array,
    resolve_palette,
)

from .recent_files import (
    OutputFileInfo,
    RecentFiles,
)

from .lcms_plotter import (
    LCMSDataPlotter,
    OutputFileType,
)

from .chromatogram import (
    ChromatogramFileType,
    ChromatogramInfo,
    ChromatogramKind,
    TICandBPIPlotter,
    compute_tic_and_bpi,
)

__all__ = [
    # Rendering
    'ImageFormat',
    'PlotRenderer',
    'render_to_array',
    'resolve_palette',

    # Recent files
    'OutputFileInfo',
    'RecentFiles',

    # LC-MS 2D plots
    'LCMSDataPlotter',
    'OutputFileType',

    # Chromatograms
    'ChromatogramFileType',
    'ChromatogramInfo',
    'ChromatogramKind',
    'TICandBPIPlotter',
    'compute_tic_and_bpi',
]
