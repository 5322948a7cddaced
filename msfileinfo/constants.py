"""Limits, trim factors and palettes for LC-MS data reduction and plotting.

Values here drive the streaming accumulator (ion caps, trim trigger) and the
series builder (marker sizes, charge colours, gradient palettes).

Key Features
------------
- Absolute per-scan ion ceiling (50,000 ions)
- Trim trigger: 5x the plot target, re-armed after 10% growth
- Log throttling limits for sorting and ion-cap notices
- Marker size tiers for dense plots
- Fixed charge -> colour palette for deisotoped plots
- File name, key separator and time format for dataset stats files
"""

import numpy as np

# =============================================================================
# Accumulator limits
# =============================================================================

# Absolute maximum number of ions tracked for a single mass spectrum
MAX_ALLOWABLE_ION_COUNT = 50_000

# Trim the cache once it holds more than this multiple of max_points_to_plot
TRIM_TRIGGER_MULTIPLIER = 5

# ... but only if it has grown by 10% since the last trim
TRIM_REARM_GROWTH_FACTOR = 1.1

# Shrink a scan's arrays after trimming once fewer than half the slots are used
SHRINK_MIN_CAPACITY = 5
SHRINK_FILL_FRACTION = 0.5

# Intensities are cached as float32
MAX_CACHED_INTENSITY = float(np.finfo(np.float32).max)

# =============================================================================
# Log throttling
# =============================================================================

# Sorting notice: first N occurrences, then every Mth
SORT_WARN_FIRST_N = 10
SORT_WARN_EVERY_N = 100

# Ion-cap notice: first N capped spectra (plus every new maximum)
ION_CAP_WARN_FIRST_N = 10

# =============================================================================
# Plot layout
# =============================================================================

# Axis rounding (scan number to 10s, m/z to 100s)
SCAN_AXIS_ROUNDING = 10
MZ_AXIS_ROUNDING = 100

# m/z vs. scan plot: marker size by scan count
MZ_PLOT_MARKER_SIZES = (
    (250, 2.0),    # < 250 scans
    (5000, 1.0),   # < 5000 scans
)
MZ_PLOT_MARKER_SIZE_DENSE = 0.6

# Mono mass vs. scan plot: marker size by scan count, then by total points
CHARGE_PLOT_MARKER_SIZES = (
    (250, 2.0),    # < 250 scans
    (500, 1.0),    # < 500 scans
)
CHARGE_PLOT_DENSE_POINT_THRESHOLD = 80_000
CHARGE_PLOT_MARKER_SIZE_DENSE = 0.8
CHARGE_PLOT_MARKER_SIZE_VERY_DENSE = 0.6

# Charge state -> series colour; anything else renders gray
CHARGE_COLORS = {
    1: "#0000CD",  # medium blue
    2: "#FF0000",  # red
    3: "#008000",  # green
    4: "#FF00FF",  # magenta
    5: "#8B4513",  # saddle brown
    6: "#4B0082",  # indigo
    7: "#32CD32",  # lime green
    8: "#6495ED",  # cornflower blue
}
DEFAULT_CHARGE_COLOR = "#808080"  # gray

# Intensity colour scale
DEFAULT_PALETTE = "Jet30"
GRADIENT_PALETTES = (
    "BlackWhiteRed30",
    "BlueWhiteRed30",
    "Cool30",
    "Gray30",
    "Hot30",
    "Hue30",
    "HueDistinct30",
    "Jet30",
    "Rainbow30",
)

# Chromatogram (TIC/BPI) y-axis headroom
CHROMATOGRAM_INTENSITY_HEADROOM = 1.02

# =============================================================================
# Dataset stats files
# =============================================================================

DEFAULT_DATASET_STATS_FILENAME = "MSFileInfo_DatasetStats.txt"

# Scan type summary key: "<scan type name>::###::<scan filter text>"
SCAN_TYPE_STATS_SEP = "::###::"

# Acquisition start / end times, e.g. "2019-06-13 02:41:07 PM"
DATASET_STATS_TIME_FORMAT = "%Y-%m-%d %I:%M:%S %p"
