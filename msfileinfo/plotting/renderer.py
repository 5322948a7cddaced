"""Matplotlib rendering of PlotData to image files.

This is the only place where pixels are produced. The rest of the package
hands over renderer-agnostic PlotData (series, axis ranges, annotations) and
picks an ImageFormat; the format is dispatched once, here.

Figures are drawn on an Agg canvas (no GUI backend, no pyplot state), so
rendering works headless and from worker threads.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
from matplotlib import colormaps
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.colors import Colormap, LinearSegmentedColormap
from matplotlib.figure import Figure

from msfileinfo.constants import DEFAULT_PALETTE
from msfileinfo.lcms.series import PlotData, PlotSeries

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 700
DEFAULT_DPI = 96
FONT_SIZE_BASE = 11

# Palette name -> matplotlib colormap name, or colour stops for a custom map
_PALETTES = {
    "BlackWhiteRed30": ("black", "white", "red"),
    "BlueWhiteRed30": ("blue", "white", "red"),
    "Cool30": "cool",
    "Gray30": "gray",
    "Hot30": "hot",
    "Hue30": "hsv",
    "HueDistinct30": "tab20",
    "Jet30": "jet",
    "Rainbow30": "rainbow",
}
_PALETTE_LEVELS = 30


class ImageFormat(Enum):
    """Output image types (matplotlib format name, file extension)."""

    PNG = ("png", ".png")
    JPG = ("jpg", ".jpg")

    def __init__(self, matplotlib_format: str, extension: str):
        self.matplotlib_format = matplotlib_format
        self.extension = extension


def resolve_palette(name: str) -> Colormap:
    """Return a 30-level colormap for a palette name such as ``Jet30``."""
    base = _PALETTES.get(name)
    if base is None:
        raise ValueError(f"Unknown palette: {name}")
    if isinstance(base, tuple):
        return LinearSegmentedColormap.from_list(name, base, N=_PALETTE_LEVELS)
    return colormaps[base].resampled(_PALETTE_LEVELS)


def _marker_area(marker_size: float) -> float:
    # Marker size is a radius in pixels; scatter wants an area in points^2
    diameter_points = 2 * marker_size * 72.0 / DEFAULT_DPI
    return diameter_points ** 2


class PlotRenderer:
    """Draws PlotData with matplotlib and writes image files.

    Parameters
    ----------
    width, height : int
        Image size in pixels
    dpi : int
        Image resolution
    """

    def __init__(self, width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT, dpi: int = DEFAULT_DPI):
        self.width = width
        self.height = height
        self.dpi = dpi

    def draw(self, plot_data: PlotData, palette: Optional[str] = None,
             width: Optional[int] = None, height: Optional[int] = None) -> Figure:
        """Build a matplotlib Figure for the plot."""
        width = width or self.width
        height = height or self.height

        figure = Figure(figsize=(width / self.dpi, height / self.dpi), dpi=self.dpi)
        FigureCanvasAgg(figure)
        ax = figure.add_subplot(111)

        colormap = resolve_palette(palette or plot_data.palette or DEFAULT_PALETTE)
        for series in plot_data.series:
            self._draw_series(ax, series, plot_data, colormap)

        ax.set_title(plot_data.title, fontsize=FONT_SIZE_BASE + 1, fontweight="bold",
                     pad=30 if plot_data.plotting_deisotoped_data else 6)
        ax.set_xlabel(plot_data.x_label, fontsize=FONT_SIZE_BASE, fontweight="bold")
        ax.set_ylabel(plot_data.y_label, fontsize=FONT_SIZE_BASE, fontweight="bold")
        ax.tick_params(labelsize=FONT_SIZE_BASE - 1)

        if plot_data.axis_range is not None:
            ax.set_xlim(plot_data.axis_range.x_min, plot_data.axis_range.x_max)
            ax.set_ylim(plot_data.axis_range.y_min, plot_data.axis_range.y_max)

        if any(series.style == "line" for series in plot_data.series):
            ax.ticklabel_format(axis="y", style="sci", scilimits=(0, 0))

        if plot_data.annotation_bottom_left:
            figure.text(0.01, 0.01, plot_data.annotation_bottom_left,
                        ha="left", va="bottom", fontsize=FONT_SIZE_BASE)
        if plot_data.annotation_bottom_right:
            figure.text(0.99, 0.01, plot_data.annotation_bottom_right,
                        ha="right", va="bottom", fontsize=FONT_SIZE_BASE)

        if plot_data.plotting_deisotoped_data:
            self._draw_charge_legend(figure, plot_data.series)

        return figure

    @staticmethod
    def _draw_series(ax, series: PlotSeries, plot_data: PlotData, colormap: Colormap):
        if series.style == "line":
            ax.plot(series.x, series.y, color=series.color or "black", linewidth=1)
        elif series.color is not None or series.values is None:
            ax.scatter(series.x, series.y, s=_marker_area(series.marker_size),
                       c=series.color or "black", marker="o", linewidths=0)
        else:
            ax.scatter(series.x, series.y, s=_marker_area(series.marker_size),
                       c=series.values, cmap=colormap,
                       vmin=plot_data.color_scale_min, vmax=plot_data.color_scale_max,
                       marker="o", linewidths=0)

    @staticmethod
    def _draw_charge_legend(figure: Figure, series_list: List[PlotSeries]):
        # One coloured label per charge state, centred above the axes
        count = len(series_list)
        for i, series in enumerate(series_list):
            x = 0.5 + (i - (count - 1) / 2) * 0.05
            figure.text(x, 0.90, series.title, color=series.color,
                        ha="center", va="bottom", fontsize=FONT_SIZE_BASE, fontweight="bold")

    def save(self, plot_data: PlotData, path: Union[str, Path],
             image_format: ImageFormat = ImageFormat.PNG,
             width: Optional[int] = None, height: Optional[int] = None) -> List[Path]:
        """Render and write the plot.

        When ``plot_data.gradients`` is set, one file per palette is written
        instead, named ``<stem>_Gradient_<palette><ext>``.

        Args:
            plot_data: Plot to draw; must contain at least one series
            path: Output file; the format's extension is appended when missing
            image_format: PNG or JPG

        Returns:
            Paths of the files written
        """
        if plot_data.is_empty:
            raise ValueError(f"Plot '{plot_data.title}' has no data to render")

        path = Path(path)
        if path.suffix.lower() != image_format.extension:
            path = path.with_name(path.name + image_format.extension)

        if not plot_data.gradients:
            self._write(plot_data, plot_data.palette, path, image_format, width, height)
            return [path]

        written = []
        for palette in plot_data.gradients:
            gradient_path = path.with_name(f"{path.stem}_Gradient_{palette}{path.suffix}")
            self._write(plot_data, palette, gradient_path, image_format, width, height)
            written.append(gradient_path)
        return written

    def _write(self, plot_data: PlotData, palette: Optional[str], path: Path,
               image_format: ImageFormat, width: Optional[int], height: Optional[int]):
        figure = self.draw(plot_data, palette, width, height)
        path.parent.mkdir(parents=True, exist_ok=True)
        figure.savefig(path, format=image_format.matplotlib_format, dpi=self.dpi,
                       facecolor="white")
        logger.info(f"Saved {path.name} ({plot_data.points_plotted:,} points)")


def render_to_array(plot_data: PlotData, renderer: Optional[PlotRenderer] = None) -> np.ndarray:
    """Render to an RGBA array (height x width x 4) without touching disk."""
    renderer = renderer or PlotRenderer()
    figure = renderer.draw(plot_data)
    canvas = figure.canvas
    canvas.draw()
    return np.asarray(canvas.buffer_rgba()).copy()
