"""Unit tests for m/z centroiding.

Tests:
- Near-duplicate suppression (most intense point wins)
- Minimum spacing between surviving points
- Idempotence
- Tolerance <= 0 is a no-op
"""

import numpy as np
import pytest

from msfileinfo.filtering import centroid_mask, centroid_ms_data, requires_centroiding


class TestCentroiding:
    """Test greedy highest-intensity-wins consolidation."""

    def test_near_duplicate_suppressed(self):
        """Test that the weaker of two close points is removed."""
        mz = np.array([100.0, 100.0005, 105.0])
        intensity = np.array([50.0, 80.0, 10.0], dtype=np.float32)
        charge = np.zeros(3, dtype=np.uint8)

        out_mz, out_intensity, out_charge = centroid_ms_data(mz, intensity, charge, 0.01)

        assert np.allclose(out_mz, [100.0005, 105.0])
        assert np.allclose(out_intensity, [80.0, 10.0])
        assert out_charge.tolist() == [0, 0]

    def test_charge_follows_surviving_point(self):
        """Test that the charge array is filtered alongside m/z."""
        mz = np.array([500.0, 500.1, 500.2])
        intensity = np.array([1.0, 9.0, 2.0])
        charge = np.array([1, 3, 2], dtype=np.uint8)

        out_mz, _, out_charge = centroid_ms_data(mz, intensity, charge, 0.5)

        assert out_mz.tolist() == [500.1]
        assert out_charge.tolist() == [3]

    def test_minimum_spacing_random(self):
        """Test that surviving points are at least the tolerance apart."""
        mz = np.sort(np.random.uniform(100.0, 110.0, 2000))
        intensity = np.random.exponential(100.0, 2000)
        resolution = 0.05

        keep = centroid_mask(mz, intensity, resolution)
        kept_mz = mz[keep]

        assert len(kept_mz) < len(mz)
        assert np.all(np.diff(kept_mz) >= resolution)

    def test_idempotent(self):
        """Test that centroiding twice changes nothing."""
        mz = np.sort(np.random.uniform(300.0, 310.0, 500))
        intensity = np.random.uniform(1.0, 1000.0, 500)
        charge = np.zeros(500, dtype=np.uint8)

        once = centroid_ms_data(mz, intensity, charge, 0.1)
        twice = centroid_ms_data(*once, 0.1)

        assert np.array_equal(once[0], twice[0])
        assert np.array_equal(once[1], twice[1])
        assert not requires_centroiding(once[0], 0.1)

    def test_most_intense_point_survives(self):
        """Test that the base peak is never suppressed."""
        mz = np.sort(np.random.uniform(100.0, 101.0, 300))
        intensity = np.random.uniform(1.0, 1000.0, 300)

        keep = centroid_mask(mz, intensity, 0.2)

        assert keep[np.argmax(intensity)]

    def test_equal_intensity_lower_mz_wins(self):
        """Test the tie-break for equal intensities."""
        mz = np.array([200.0, 200.001])
        intensity = np.array([10.0, 10.0])

        keep = centroid_mask(mz, intensity, 0.01)

        assert keep.tolist() == [True, False]

    def test_nonpositive_resolution_is_noop(self):
        """Test that a tolerance <= 0 returns the input unchanged."""
        mz = np.array([100.0, 100.0001])
        intensity = np.array([1.0, 2.0])
        charge = np.zeros(2, dtype=np.uint8)

        for resolution in (0.0, -1.0):
            out_mz, out_intensity, _ = centroid_ms_data(mz, intensity, charge, resolution)
            assert np.array_equal(out_mz, mz)
            assert np.array_equal(out_intensity, intensity)
            assert centroid_mask(mz, intensity, resolution).all()

    def test_length_mismatch_raises(self):
        """Test that m/z and intensity must have the same length."""
        with pytest.raises(ValueError, match="lengths differ"):
            centroid_mask(np.array([1.0, 2.0]), np.array([1.0]), 0.1)


class TestRequiresCentroiding:
    """Test the spacing pre-check."""

    def test_close_points_detected(self):
        assert requires_centroiding(np.array([100.0, 100.2, 101.0]), 0.4)

    def test_well_separated_points(self):
        assert not requires_centroiding(np.array([100.0, 101.0, 102.0]), 0.4)

    def test_short_or_disabled(self):
        assert not requires_centroiding(np.array([100.0]), 0.4)
        assert not requires_centroiding(np.array([100.0, 100.0]), 0.0)
