"""Pytest configuration for msfileinfo tests.

This module provides common fixtures and configuration for all tests.
Plots are rendered with the Agg canvas only, so no display is needed.
"""

import numpy as np
import pytest

from msfileinfo.lcms import FilterOptions, ScanAccumulator


def make_scan_arrays(ion_count, start_mz=100.0, spacing=1.0, intensities=None, charge=None):
    """Evenly spaced m/z values with random (or given) intensities."""
    mz = start_mz + spacing * np.arange(ion_count, dtype=np.float64)
    if intensities is None:
        intensities = np.random.uniform(1.0, 1e6, ion_count)
    if charge is None:
        charge = np.zeros(ion_count, dtype=np.uint8)
    return mz, np.asarray(intensities, dtype=np.float64), np.asarray(charge, dtype=np.uint8)


@pytest.fixture
def scan_factory():
    """Callable returning (mz, intensity, charge) arrays for one scan."""
    return make_scan_arrays


@pytest.fixture
def scenario_a_ions():
    """Two near-duplicate ions and one isolated ion."""
    return [(100.0, 50, 0), (100.0005, 80, 0), (105.0, 10, 0)]


@pytest.fixture
def default_accumulator():
    """Accumulator with default options."""
    return ScanAccumulator(FilterOptions())


@pytest.fixture
def small_accumulator():
    """Accumulator with a small plot target, as used for trim tests."""
    return ScanAccumulator(FilterOptions(max_points_to_plot=2000, min_points_per_spectrum=10))


@pytest.fixture
def populated_accumulator():
    """Accumulator holding 20 MS1 and 20 MS2 scans of 50 ions each."""
    accumulator = ScanAccumulator(FilterOptions())
    for i in range(40):
        mz, intensity, charge = make_scan_arrays(50, start_mz=200.0 + i)
        ms_level = 1 if i % 2 == 0 else 2
        accumulator.add_scan_arrays(i + 1, ms_level, 0.25 * (i + 1), mz, intensity, charge)
    return accumulator


@pytest.fixture
def deisotoped_accumulator():
    """Deisotoped data (monoisotopic masses) with charges 0, 1 and 2."""
    accumulator = ScanAccumulator(FilterOptions.for_deisotoped_data())
    for i in range(10):
        mz = np.array([1000.0, 2000.0, 3000.0, 4000.0, 5000.0, 6000.0]) + i
        intensity = np.array([100.0, 200.0, 300.0, 400.0, 500.0, 600.0])
        charge = np.array([0, 1, 2, 0, 1, 2], dtype=np.uint8)
        accumulator.add_scan_arrays(i + 1, 1, 0.5 * (i + 1), mz, intensity, charge)
    return accumulator


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
