"""Empirical stellar relations: mass → radius, luminosity, temperature.

Every star is characterized by its mass alone. The remaining attributes
follow from documented empirical fits, all in solar units:

    R = a·M + b                              (linear mass-radius fit)
    ln L = slope_k · ln M + intercept_k      (segment k: first M ≤ bound_k)
    T = T_sun · (L / R²)^¼                   (Stefan-Boltzmann, solar-scaled)
    I = L / 4π                               (isotropic radiant intensity)

The piecewise mass-luminosity relation is the four main-sequence segments
of Eker et al. (2018) above 0.72 M_sun, with the lowest segment extended
down to M → 0 and the highest left open-ended.

References
----------
- Eker, Z. et al. (2018). MNRAS, 479, 5491–5511.
"""

from __future__ import annotations

import logging

import numpy as np

from starfield.constants import StarboxConfig, StellarModelConfig

logger = logging.getLogger(__name__)

_FOUR_PI: float = 4.0 * np.pi


class StellarModel:
    """Derives physical star attributes from mass.

    The mass-luminosity segments are held as an ordered table of
    ``(upper_bound, slope, intercept)`` rows and looked up with
    ``np.searchsorted``, so a mass exactly on a bound belongs to the
    lower segment.

    Parameters
    ----------
    model : StellarModelConfig
        Empirical fit coefficients.
    solar_temperature_k : float
        Solar effective temperature used to scale T [K].
    """

    def __init__(self, model: StellarModelConfig, solar_temperature_k: float) -> None:
        self._mass_rate = model.mass_rate
        self._radius_slope = model.radius_slope
        self._radius_intercept = model.radius_intercept
        self._solar_temperature_k = solar_temperature_k

        self._upper_bounds = np.array(
            [s.upper_mass for s in model.mass_luminosity], dtype=np.float64
        )
        self._slopes = np.array([s.slope for s in model.mass_luminosity], dtype=np.float64)
        self._intercepts = np.array(
            [s.intercept for s in model.mass_luminosity], dtype=np.float64
        )

        logger.debug(
            "StellarModel: λ=%.3g, %d luminosity segments, R = %.3g·M + %.3g, T_sun=%.0f K",
            self._mass_rate,
            len(self._upper_bounds),
            self._radius_slope,
            self._radius_intercept,
            self._solar_temperature_k,
        )

    @classmethod
    def from_config(cls, config: StarboxConfig) -> StellarModel:
        return cls(config.stellar_model, config.constants.solar_temperature_k)

    def segment_index(self, mass: np.ndarray | float) -> np.ndarray:
        """Index of the luminosity segment for each mass (first bound not exceeded)."""
        return np.searchsorted(self._upper_bounds, np.asarray(mass, dtype=np.float64), side="left")

    def radius(self, mass: np.ndarray | float) -> np.ndarray:
        """Stellar radius [R_sun]."""
        return self._radius_slope * np.asarray(mass, dtype=np.float64) + self._radius_intercept

    def luminosity(self, mass: np.ndarray | float) -> np.ndarray:
        """Bolometric luminosity [L_sun]; zero for non-positive mass."""
        mass = np.asarray(mass, dtype=np.float64)
        k = self.segment_index(mass)
        positive = mass > 0.0
        ln_mass = np.log(np.where(positive, mass, 1.0))
        ln_lum = self._slopes[k] * ln_mass + self._intercepts[k]
        return np.where(positive, np.exp(ln_lum), 0.0)

    def temperature(
        self,
        luminosity: np.ndarray | float,
        radius: np.ndarray | float,
    ) -> np.ndarray:
        """Effective temperature [K] from T = T_sun · (L / R²)^¼."""
        luminosity = np.asarray(luminosity, dtype=np.float64)
        radius = np.asarray(radius, dtype=np.float64)
        return self._solar_temperature_k * (luminosity / (radius * radius)) ** 0.25

    @staticmethod
    def intensity(luminosity: np.ndarray | float) -> np.ndarray:
        """Radiant intensity [L_sun/sr] of an isotropic emitter."""
        return np.asarray(luminosity, dtype=np.float64) / _FOUR_PI

    def sample_mass(self, rng: np.random.Generator, count: int) -> np.ndarray:
        """Draw ``count`` masses from Exponential(λ) [M_sun]."""
        return rng.exponential(1.0 / self._mass_rate, size=count)


def irradiance_from_intensity(
    intensity: np.ndarray | float,
    distance_sq: np.ndarray | float,
    scaling_constant: float,
) -> np.ndarray:
    """Inverse-square irradiance at the viewer in stored units.

    E = I / d² · scaling_constant

    A source at zero distance contributes nothing instead of dividing by
    zero.

    Parameters
    ----------
    intensity : array_like
        Radiant intensity [L_sun/sr].
    distance_sq : array_like
        Squared source distance [kpc²].
    scaling_constant : float
        Conversion from L_sun/sr/kpc² to stored irradiance units.

    Returns
    -------
    np.ndarray
        Irradiance in stored units (pW/m² with the default config).
    """
    intensity = np.asarray(intensity, dtype=np.float64)
    distance_sq = np.asarray(distance_sq, dtype=np.float64)
    nonzero = distance_sq > 0.0
    safe_d2 = np.where(nonzero, distance_sq, 1.0)
    return np.where(nonzero, intensity / safe_d2 * scaling_constant, 0.0)
