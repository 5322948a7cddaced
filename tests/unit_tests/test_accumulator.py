"""Unit tests for the streaming scan accumulator.

Tests:
- Centroiding, sorting and intensity filtering on ingestion
- Empty scans (no-op outcome)
- Per-scan ion cap
- Mid-stream trim trigger and explicit global trimming with a per-scan floor
- MS level validation and average intensity
"""

import logging

import numpy as np
import pytest

from msfileinfo.constants import MAX_ALLOWABLE_ION_COUNT
from msfileinfo.lcms import AddOutcome, FilterOptions, ScanAccumulator, ScanRecord, SeriesBuilder, TrimError


class TestAddScan:
    """Test scan ingestion."""

    def test_centroiding_on_add(self, scenario_a_ions):
        """Test that near-duplicate ions are consolidated on add."""
        accumulator = ScanAccumulator(FilterOptions(mz_resolution=0.01))

        outcome = accumulator.add_scan(1, 1, 0.5, scenario_a_ions)

        assert outcome is AddOutcome.ADDED
        assert outcome.added
        scan = accumulator.get_cached_scan_by_index(0)
        assert np.allclose(scan.mz, [100.0005, 105.0])
        assert np.allclose(scan.intensity, [80.0, 10.0])
        assert scan.charges.tolist() == [0, 0]
        assert accumulator.points_cached == 2

    def test_empty_scan_is_noop(self, default_accumulator):
        """Test that an empty ion list leaves the cache unchanged."""
        default_accumulator.add_scan(1, 1, 0.1, [(100.0, 5.0)])
        points_before = default_accumulator.points_cached

        assert default_accumulator.add_scan(2, 1, 0.2, []) is AddOutcome.NO_DATA
        assert default_accumulator.add_scan_arrays(3, 1, 0.3, np.array([]), np.array([])) is AddOutcome.NO_DATA
        assert default_accumulator.add_scan_skip_filters(None) is AddOutcome.NO_DATA

        assert default_accumulator.points_cached == points_before
        assert default_accumulator.scan_count_cached == 1

    def test_zero_and_low_intensity_dropped(self):
        """Test intensity filtering against zero and min_intensity."""
        accumulator = ScanAccumulator(FilterOptions(min_intensity=10.0))

        accumulator.add_scan(1, 1, 0.1, [(100.0, 0.0), (200.0, 5.0), (300.0, 10.0), (400.0, 50.0)])

        scan = accumulator.get_cached_scan_by_index(0)
        assert scan.mz.tolist() == [300.0, 400.0]

    def test_all_points_filtered_scan_still_cached(self):
        """Test that a scan with no surviving points is kept with zero ions."""
        accumulator = ScanAccumulator(FilterOptions(min_intensity=100.0))

        outcome = accumulator.add_scan(1, 1, 4.0, [(100.0, 5.0), (200.0, 6.0)])

        assert outcome is AddOutcome.ADDED
        assert accumulator.scan_count_cached == 1
        assert accumulator.points_cached == 0

    def test_unsorted_input_sorted_with_warning(self, default_accumulator, caplog):
        """Test that unsorted m/z input is sorted and reported."""
        with caplog.at_level(logging.WARNING, logger="msfileinfo.lcms.accumulator"):
            default_accumulator.add_scan(1, 1, 0.1, [(300.0, 3.0, 3), (100.0, 1.0, 1), (200.0, 2.0, 2)])

        scan = default_accumulator.get_cached_scan_by_index(0)
        assert scan.mz.tolist() == [100.0, 200.0, 300.0]
        assert scan.intensity.tolist() == [1.0, 2.0, 3.0]
        assert scan.charges.tolist() == [1, 2, 3]
        assert "Sorting m/z data" in caplog.text

    def test_sort_warning_rate_limited(self, default_accumulator, caplog):
        """Test that only the first sort warnings are logged."""
        with caplog.at_level(logging.WARNING, logger="msfileinfo.lcms.accumulator"):
            for i in range(50):
                default_accumulator.add_scan(i, 1, 0.1, [(300.0, 3.0), (100.0, 1.0)])

        assert len([r for r in caplog.records if "Sorting" in r.getMessage()]) == 10

    def test_zero_intensity_disorder_not_reported(self, default_accumulator, caplog):
        """Test that disorder among zero-intensity points is sorted silently."""
        with caplog.at_level(logging.WARNING, logger="msfileinfo.lcms.accumulator"):
            default_accumulator.add_scan(1, 1, 0.1, [(100.0, 5.0), (300.0, 0.0), (200.0, 0.0)])

        assert "Sorting" not in caplog.text
        assert default_accumulator.get_cached_scan_by_index(0).mz.tolist() == [100.0]

    def test_add_scan_2d(self, default_accumulator):
        """Test the 2 x N array entry point."""
        pairs = np.array([[100.0, 200.0, 300.0], [1.0, 2.0, 3.0]])

        default_accumulator.add_scan_2d(1, 1, 0.1, pairs)

        assert default_accumulator.points_cached == 3

    def test_malformed_input_raises(self, default_accumulator):
        """Test that malformed ion data is rejected."""
        with pytest.raises(ValueError):
            default_accumulator.add_scan(1, 1, 0.1, [(100.0,), (200.0,)])
        with pytest.raises(ValueError):
            default_accumulator.add_scan_2d(1, 1, 0.1, np.zeros((3, 4)))
        with pytest.raises(ValueError):
            default_accumulator.add_scan_arrays(1, 1, 0.1, np.array([1.0, 2.0]), np.array([1.0]))

    def test_intensity_clamped_to_float32(self, default_accumulator):
        """Test that huge intensities are stored at the float32 maximum."""
        default_accumulator.add_scan(1, 1, 0.1, [(100.0, 1e300)])

        scan = default_accumulator.get_cached_scan_by_index(0)
        assert np.isfinite(scan.intensity[0])
        assert scan.intensity[0] == np.finfo(np.float32).max

    def test_ion_cap(self, default_accumulator, scan_factory):
        """Test that one scan retains at most the maximum ion count."""
        n = MAX_ALLOWABLE_ION_COUNT + 5000
        mz, intensity, charge = scan_factory(n)

        default_accumulator.add_scan_arrays(1, 1, 0.1, mz, intensity, charge)

        scan = default_accumulator.get_cached_scan_by_index(0)
        assert scan.ion_count == MAX_ALLOWABLE_ION_COUNT
        assert default_accumulator.points_cached == MAX_ALLOWABLE_ION_COUNT
        assert np.all(np.diff(scan.mz) > 0)
        threshold = np.sort(intensity.astype(np.float32))[-MAX_ALLOWABLE_ION_COUNT]
        assert scan.intensity.min() >= threshold

    def test_ion_cap_notice_rate_limited(self, default_accumulator, scan_factory, caplog, monkeypatch):
        """Test that the cap notice is logged for the first 10 scans, then only for a new maximum."""
        monkeypatch.setattr("msfileinfo.lcms.accumulator.MAX_ALLOWABLE_ION_COUNT", 100)

        with caplog.at_level(logging.INFO, logger="msfileinfo.lcms.accumulator"):
            for i in range(12):
                default_accumulator.add_scan_arrays(i + 1, 1, 0.1 * i, *scan_factory(150))

            notices = [r for r in caplog.records if "will only retain" in r.getMessage()]
            assert len(notices) == 10
            assert all(r.levelno == logging.INFO for r in notices)

            default_accumulator.add_scan_arrays(13, 1, 1.3, *scan_factory(200))

            notices = [r for r in caplog.records if "will only retain" in r.getMessage()]
            assert len(notices) == 11
            assert "Scan 13 has 200 ions" in notices[-1].getMessage()

        assert all(scan.ion_count == 100 for scan in default_accumulator.scans)

    def test_out_of_range_charge_raises(self, default_accumulator):
        """Test that charges outside 0-255 are rejected instead of wrapping."""
        mz = np.array([100.0, 200.0])
        intensity = np.array([1.0, 2.0])

        with pytest.raises(ValueError, match="charges"):
            default_accumulator.add_scan_arrays(1, 1, 0.1, mz, intensity, np.array([2, 300]))
        with pytest.raises(ValueError, match="charges"):
            default_accumulator.add_scan_arrays(1, 1, 0.1, mz, intensity, np.array([-1, 2]))

        assert default_accumulator.scan_count_cached == 0

        default_accumulator.add_scan_arrays(1, 1, 0.1, mz, intensity, np.array([0, 255]))
        assert default_accumulator.get_cached_scan_by_index(0).charges.tolist() == [0, 255]

    def test_non_finite_mz_dropped(self, default_accumulator):
        """Test that NaN and infinite m/z values are dropped on add."""
        mz = np.array([np.nan, 100.0, np.inf, 200.0, -np.inf])
        intensity = np.array([5.0, 1.0, 5.0, 2.0, 5.0])

        default_accumulator.add_scan_arrays(1, 1, 0.1, mz, intensity)
        default_accumulator.add_scan_arrays(2, 1, 0.2, np.array([300.0, 150.0]), np.array([np.nan, 3.0]))

        assert default_accumulator.get_cached_scan_by_index(0).mz.tolist() == [100.0, 200.0]
        assert default_accumulator.get_cached_scan_by_index(1).mz.tolist() == [150.0]

        plot = SeriesBuilder(default_accumulator).build_plot("t", 1)
        assert plot.points_plotted == 3
        assert np.isfinite(plot.axis_range.y_min) and np.isfinite(plot.axis_range.y_max)

    def test_skip_filters_copies_record(self, default_accumulator):
        """Test that add_scan_skip_filters stores an independent copy."""
        scan = ScanRecord(3, 1, 1.0, [100.0, 100.01], [1.0, 2.0])

        assert default_accumulator.add_scan_skip_filters(scan) is AddOutcome.ADDED
        scan.ions_intensity[0] = 50.0

        cached = default_accumulator.get_cached_scan_by_index(0)
        # No centroiding on this path
        assert cached.ion_count == 2
        assert cached.intensity[0] == 1.0


class TestTrimming:
    """Test memory-bounded trimming."""

    def test_no_trim_below_trigger(self, small_accumulator, scan_factory):
        """Test that 5 x 1000 points stay below the 5 x 2000 trigger."""
        for i in range(5):
            small_accumulator.add_scan_arrays(i + 1, 1, 0.1 * i, *scan_factory(1000))

        assert small_accumulator.trim_count == 0
        assert small_accumulator.points_cached == 5000

    def test_trim_fires_midstream(self, small_accumulator, scan_factory):
        """Test that feeding 50 x 1000 points trims the cache."""
        for i in range(50):
            small_accumulator.add_scan_arrays(i + 1, 1, 0.1 * i, *scan_factory(1000))

        assert small_accumulator.trim_count >= 1
        assert small_accumulator.points_cached <= 2000 * 5 + 1000
        assert small_accumulator.scan_count_cached == 50

        small_accumulator.trim_cached_data(2000, 10)

        assert small_accumulator.points_cached <= 2000 + 10 * 50
        for scan in small_accumulator.scans:
            assert scan.ion_count >= 10

    def test_trim_is_global_threshold(self, default_accumulator):
        """Test that trimming keeps the globally most intense points."""
        default_accumulator.add_scan_arrays(1, 1, 0.1, np.arange(100.0, 110.0), np.arange(1.0, 11.0))
        default_accumulator.add_scan_arrays(2, 1, 0.2, np.arange(100.0, 110.0), np.arange(11.0, 21.0))

        default_accumulator.trim_cached_data(10, 0)

        first = default_accumulator.get_cached_scan_by_index(0)
        second = default_accumulator.get_cached_scan_by_index(1)
        assert first.ion_count == 0
        assert second.ion_count == 10
        assert default_accumulator.points_cached == 10

    def test_floor_keeps_top_points_of_sparse_scan(self, default_accumulator):
        """Test that a scan losing out globally keeps its own top points."""
        default_accumulator.add_scan_arrays(1, 1, 0.1, np.arange(100.0, 110.0), np.arange(1.0, 11.0))
        default_accumulator.add_scan_arrays(2, 1, 0.2, np.arange(100.0, 110.0), np.arange(11.0, 21.0))

        default_accumulator.trim_cached_data(10, 3)

        first = default_accumulator.get_cached_scan_by_index(0)
        assert first.intensity.tolist() == [8.0, 9.0, 10.0]
        assert default_accumulator.points_cached == 13

    def test_small_scans_untouched(self, default_accumulator):
        """Test that scans at or below the floor are never trimmed."""
        default_accumulator.add_scan_arrays(1, 1, 0.1, np.array([100.0, 200.0]), np.array([1.0, 2.0]))
        default_accumulator.add_scan_arrays(2, 1, 0.2, np.arange(100.0, 120.0), np.full(20, 1000.0))

        default_accumulator.trim_cached_data(5, 2)

        assert default_accumulator.get_cached_scan_by_index(0).ion_count == 2
        assert default_accumulator.get_cached_scan_by_index(1).ion_count == 5

    def test_trim_shrinks_sparse_arrays(self, default_accumulator):
        """Test that mostly empty scans release capacity."""
        default_accumulator.add_scan_arrays(1, 1, 0.1, np.arange(100.0, 200.0), np.arange(1.0, 101.0))

        default_accumulator.trim_cached_data(10, 2)

        scan = default_accumulator.get_cached_scan_by_index(0)
        assert scan.ion_count == 10
        assert scan.capacity == 10

    def test_trim_failure_chains_cause(self, default_accumulator, monkeypatch):
        """Test that a failure inside trimming surfaces as TrimError with its cause."""
        default_accumulator.add_scan_arrays(1, 1, 0.1, np.arange(100.0, 110.0), np.arange(1.0, 11.0))

        def failing_compact(self, keep_mask):
            raise RuntimeError("compaction failed")

        monkeypatch.setattr(ScanRecord, "compact", failing_compact)

        with pytest.raises(TrimError, match="compaction failed") as excinfo:
            default_accumulator.trim_cached_data(5, 2)

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert default_accumulator.trim_count == 0

    def test_ion_cap_failure_chains_cause(self, default_accumulator, scan_factory, monkeypatch):
        """Test that a failure while capping one scan is wrapped the same way."""
        monkeypatch.setattr("msfileinfo.lcms.accumulator.MAX_ALLOWABLE_ION_COUNT", 100)

        def failing_compact(self, keep_mask):
            raise RuntimeError("compaction failed")

        monkeypatch.setattr(ScanRecord, "compact", failing_compact)

        with pytest.raises(TrimError, match="scan 7") as excinfo:
            default_accumulator.add_scan_arrays(7, 1, 0.1, *scan_factory(150))

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert default_accumulator.scan_count_cached == 0

    def test_reset(self, small_accumulator, scan_factory):
        small_accumulator.add_scan_arrays(1, 1, 0.1, *scan_factory(100))
        small_accumulator.reset()

        assert small_accumulator.scan_count_cached == 0
        assert small_accumulator.points_cached == 0
        assert small_accumulator.trim_count == 0


class TestSummaries:
    """Test MS level validation and average intensity."""

    def test_validate_ms_level_promotes_unknown(self, default_accumulator):
        """Test that all-zero MS levels become MS1."""
        default_accumulator.add_scan(1, 0, 0.1, [(100.0, 1.0)])
        default_accumulator.add_scan(2, 0, 0.2, [(100.0, 1.0)])

        default_accumulator.validate_ms_level()

        assert all(scan.ms_level == 1 for scan in default_accumulator.scans)

    def test_validate_ms_level_keeps_known(self, default_accumulator):
        """Test that known MS levels are left alone."""
        default_accumulator.add_scan(1, 0, 0.1, [(100.0, 1.0)])
        default_accumulator.add_scan(2, 2, 0.2, [(100.0, 1.0)])

        default_accumulator.validate_ms_level()

        levels = [scan.ms_level for scan in default_accumulator.scans]
        assert levels == [0, 2]

    def test_average_intensity_by_level(self, default_accumulator):
        """Test the mean intensity with an MS level filter."""
        default_accumulator.add_scan(1, 1, 0.1, [(100.0, 10.0), (200.0, 20.0)])
        default_accumulator.add_scan(2, 2, 0.2, [(100.0, 100.0)])

        assert default_accumulator.compute_average_intensity_all_scans(1) == pytest.approx(15.0)
        assert default_accumulator.compute_average_intensity_all_scans(2) == pytest.approx(100.0)
        assert default_accumulator.compute_average_intensity_all_scans(0) == pytest.approx(130.0 / 3)

    def test_average_intensity_empty(self, default_accumulator):
        assert default_accumulator.compute_average_intensity_all_scans(0) == 0.0


class TestFilterOptions:
    """Test option validation and factories."""

    def test_defaults(self):
        options = FilterOptions()

        assert options.max_points_to_plot == 200_000
        assert options.min_points_per_spectrum == 2
        assert options.mz_resolution == pytest.approx(0.4)
        assert not options.plotting_deisotoped_data

    def test_invalid_values_raise(self):
        """Test that negative counts and tolerances are rejected."""
        with pytest.raises(ValueError):
            FilterOptions(max_points_to_plot=-1)
        with pytest.raises(ValueError):
            FilterOptions(min_points_per_spectrum=-1)
        with pytest.raises(ValueError):
            FilterOptions(mz_resolution=-0.1)
        with pytest.raises(ValueError):
            FilterOptions(max_mono_mass_for_deisotoped_plot=0)

    def test_factories(self):
        """Test the deisotoped preset and copy-with-overrides."""
        deisotoped = FilterOptions.for_deisotoped_data(max_points_to_plot=1000)

        assert deisotoped.plotting_deisotoped_data
        assert deisotoped.mz_resolution == 0.0
        assert deisotoped.max_points_to_plot == 1000

        changed = deisotoped.with_overrides(min_intensity=5.0)
        assert changed.min_intensity == 5.0
        assert deisotoped.min_intensity == 0.0
