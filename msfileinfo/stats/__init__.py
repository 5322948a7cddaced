"""Per-scan stats and dataset summary files.

This module provides:
- ScanStatsEntry: TIC, base peak and ion counts for one spectrum
- DatasetStatsSummarizer: MS / MSn summary values, scan stats files and the
  appended dataset stats file
- DatasetFileInfo / SampleInfo: acquisition and sample metadata for the reports
"""

from .scan_stats import (
    DatasetFileInfo,
    DatasetSummaryStats,
    ExtendedScanInfo,
    SampleInfo,
    ScanStatsEntry,
    SummaryStatDetails,
)

from .summarizer import (
    DatasetStatsSummarizer,
    compute_scan_stats_summary,
    scan_type_key,
    split_scan_type_key,
)

__all__ = [
    # Records
    'DatasetFileInfo',
    'DatasetSummaryStats',
    'ExtendedScanInfo',
    'SampleInfo',
    'ScanStatsEntry',
    'SummaryStatDetails',

    # Summarizer
    'DatasetStatsSummarizer',
    'compute_scan_stats_summary',
    'scan_type_key',
    'split_scan_type_key',
]
