"""Filter and plot options for an LC-MS accumulation session."""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class FilterOptions:
    """Options controlling data reduction and the 2D LC-MS plots.

    Immutable for the lifetime of an accumulation session; use
    ``with_overrides`` to derive a modified copy.
    """

    # Target number of points shown in a plot
    max_points_to_plot: int = 200_000

    # Scans with this many points or fewer are never trimmed
    min_points_per_spectrum: int = 2

    # Centroiding tolerance (m/z units); 0 disables centroiding
    mz_resolution: float = 0.4

    # Points below this intensity are dropped on ingestion
    min_intensity: float = 0.0

    # Plot monoisotopic mass by charge instead of m/z by intensity
    plotting_deisotoped_data: bool = False

    # Y-axis cap for deisotoped plots (Da)
    max_mono_mass_for_deisotoped_plot: float = 12_000.0

    # Start the scan axis at the first observed scan rather than 0
    use_observed_min_scan: bool = False

    ms1_plot_title: str = "MS Spectra"
    ms2_plot_title: str = "MS2 Spectra"

    # Render one extra image per gradient palette
    test_gradient_color_schemes: bool = False

    def __post_init__(self):
        if self.max_points_to_plot < 0:
            raise ValueError(f"max_points_to_plot must be non-negative, got {self.max_points_to_plot}")
        if self.min_points_per_spectrum < 0:
            raise ValueError(
                f"min_points_per_spectrum must be non-negative, got {self.min_points_per_spectrum}"
            )
        if self.mz_resolution < 0:
            raise ValueError(f"mz_resolution must be non-negative, got {self.mz_resolution}")
        if self.max_mono_mass_for_deisotoped_plot <= 0:
            raise ValueError(
                "max_mono_mass_for_deisotoped_plot must be positive, "
                f"got {self.max_mono_mass_for_deisotoped_plot}"
            )

    @classmethod
    def for_deisotoped_data(cls, **overrides) -> 'FilterOptions':
        """Options for plotting deisotoped (monoisotopic mass) data.

        Deisotoped data is already one point per feature, so centroiding is
        disabled unless explicitly requested.
        """
        settings = {"plotting_deisotoped_data": True, "mz_resolution": 0.0}
        settings.update(overrides)
        return cls(**settings)

    def with_overrides(self, **changes) -> 'FilterOptions':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
