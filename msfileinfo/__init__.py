"""msfileinfo - LC-MS data reduction and plotting for dataset QC reports.

Streams per-scan ion lists from mass spectrometry readers into a memory-bounded
cache (centroiding, per-scan ion caps, global top-K trimming) and turns the
reduced point cloud into 2D LC-MS plots and TIC/BPI chromatograms. Per-scan
stats are summarized into tab-delimited scan stats and dataset stats files.

Vendor file readers, dataset info XML and CLI handling live outside this
package; they push scans in and collect the image files written here.
"""

__version__ = "0.1.0"

from msfileinfo import constants
from msfileinfo import filtering
from msfileinfo import lcms
from msfileinfo import plotting
from msfileinfo import stats

__all__ = [
    "constants",
    "filtering",
    "lcms",
    "plotting",
    "stats",
]
