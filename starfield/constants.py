"""Physical constants, stellar model parameters, and configuration loader.

All numerical values are loaded from YAML configuration files.
No physical constants or empirical fit coefficients are hardcoded in the
generator; this module provides a typed, validated interface to them.

References
----------
- Prša, A. et al. (2016). "Nominal values for selected solar and planetary
  quantities: IAU 2015 Resolution B3." AJ, 152, 41.
- Eker, Z. et al. (2018). "Interrelated main-sequence mass-luminosity,
  mass-radius, and mass-effective temperature relations." MNRAS, 479, 5491.
"""

from __future__ import annotations

import hashlib
import logging
import math
import platform
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import numpy as np
import yaml

logger = logging.getLogger(__name__)

CHANNEL_LAYOUTS: tuple[str, ...] = ("YT", "RGB")
_HALF_MAX: float = float(np.finfo(np.float16).max)

# ---------------------------------------------------------------------------
# Configuration Data Classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FundamentalConstants:
    """Solar reference values and distance unit.

    Attributes
    ----------
    solar_luminosity_w : float
        Nominal solar luminosity [W].
    solar_temperature_k : float
        Nominal solar effective temperature [K].
    kiloparsec_m : float
        1 kiloparsec [m]; the unit of all star positions.
    """

    solar_luminosity_w: float
    solar_temperature_k: float
    kiloparsec_m: float


@dataclass(frozen=True)
class GalaxyConfig:
    """Shape of the flattened stellar disk.

    Attributes
    ----------
    disk_sigma_kpc : float
        Standard deviation of the in-plane (x, z) star positions [kpc].
    height_sigma_kpc : float
        Standard deviation of the out-of-plane (y) star positions [kpc].
    """

    disk_sigma_kpc: float
    height_sigma_kpc: float


@dataclass(frozen=True)
class LuminositySegment:
    """One segment of the piecewise mass-luminosity relation.

    ln L = slope · ln M + intercept, valid for M ≤ upper_mass.

    Attributes
    ----------
    upper_mass : float
        Inclusive upper mass bound [M_sun]; ``math.inf`` for the open-ended
        last segment.
    slope : float
        Power-law exponent (identical in log10 and ln form).
    intercept : float
        Natural-log intercept.
    """

    upper_mass: float
    slope: float
    intercept: float


@dataclass(frozen=True)
class StellarModelConfig:
    """Empirical stellar relations.

    Attributes
    ----------
    mass_rate : float
        Rate λ of the exponential mass distribution [1/M_sun].
    radius_slope : float
        Slope a of R = a·M + b [R_sun/M_sun].
    radius_intercept : float
        Intercept b of R = a·M + b [R_sun].
    mass_luminosity : tuple[LuminositySegment, ...]
        Ordered segments; the first bound not exceeded selects the segment.
    """

    mass_rate: float
    radius_slope: float
    radius_intercept: float
    mass_luminosity: tuple[LuminositySegment, ...]


@dataclass(frozen=True)
class CubemapConfig:
    """Output cube map layout.

    Attributes
    ----------
    resolution : int
        Cube edge length [px].
    channel_layout : str
        'YT' (irradiance + temperature) or 'RGB'.
    storage_max : float
        Largest value representable by the storage format.
    """

    resolution: int
    channel_layout: str
    storage_max: float

    @property
    def num_channels(self) -> int:
        return len(self.channel_layout)

    @property
    def num_pixels(self) -> int:
        return self.resolution * self.resolution * 6


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling controls.

    Attributes
    ----------
    star_count_thousands : int
        Number of stars to draw, in thousands.
    batch_size : int
        Stars drawn per vectorized batch. Part of the reproducibility key.
    seed : int or None
        Seed for the random stream; None draws fresh OS entropy.
    """

    star_count_thousands: int
    batch_size: int
    seed: int | None

    @property
    def star_count(self) -> int:
        return self.star_count_thousands * 1000


@dataclass(frozen=True)
class Assumption:
    """A documented model assumption.

    Attributes
    ----------
    parameter : str
        Name of the assumed parameter.
    value : str
        Assumed value (string representation).
    source : str
        Literature source or rationale.
    uncertainty : str
        Uncertainty estimate or 'N/A'.
    """

    parameter: str
    value: str
    source: str
    uncertainty: str


@dataclass(frozen=True)
class StarboxConfig:
    """Top-level generator configuration loaded from YAML.

    Attributes
    ----------
    constants : FundamentalConstants
        Solar reference values and distance unit.
    galaxy : GalaxyConfig
        Disk shape.
    stellar_model : StellarModelConfig
        Mass, radius and luminosity relations.
    irradiance_unit_w_m2 : float
        Physical value of one stored irradiance unit [W/m²].
    scaling_constant : float
        Factor converting L_sun/sr / kpc² into stored irradiance units.
    cubemap : CubemapConfig
        Output layout.
    generation : GenerationConfig
        Sampling controls.
    assumptions : tuple[Assumption, ...]
        Registry of documented model assumptions.
    """

    constants: FundamentalConstants
    galaxy: GalaxyConfig
    stellar_model: StellarModelConfig
    irradiance_unit_w_m2: float
    scaling_constant: float
    cubemap: CubemapConfig
    generation: GenerationConfig
    assumptions: tuple[Assumption, ...] = field(default_factory=tuple)

    def with_overrides(
        self,
        resolution: int | None = None,
        star_count_thousands: int | None = None,
        channel_layout: str | None = None,
        seed: int | None = None,
    ) -> StarboxConfig:
        """Return a validated copy with command-line overrides applied.

        Parameters left as None keep their configured value.
        """
        cubemap = self.cubemap
        if resolution is not None:
            cubemap = replace(cubemap, resolution=int(resolution))
        if channel_layout is not None:
            cubemap = replace(cubemap, channel_layout=str(channel_layout).upper())

        generation = self.generation
        if star_count_thousands is not None:
            generation = replace(generation, star_count_thousands=int(star_count_thousands))
        if seed is not None:
            generation = replace(generation, seed=int(seed))

        config = replace(self, cubemap=cubemap, generation=generation)
        _validate_config(config)
        return config


# ---------------------------------------------------------------------------
# Configuration Loader
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path) -> StarboxConfig:
    """Load and validate a generator configuration from a YAML file.

    Parameters
    ----------
    config_path : str or Path
        Path to the YAML configuration file.

    Returns
    -------
    StarboxConfig
        Fully populated, typed configuration object.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If required configuration keys are missing or values are invalid.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw: dict[str, Any] = yaml.safe_load(f)

    logger.info("Loading configuration from: %s", config_path)

    try:
        config = _parse_config(raw)
    except KeyError as exc:
        raise ValueError(f"Missing configuration key: {exc}") from exc

    _validate_config(config)
    logger.info(
        "Configuration loaded successfully. %d assumptions registered.",
        len(config.assumptions),
    )

    return config


def _parse_config(raw: dict[str, Any]) -> StarboxConfig:
    """Build the typed configuration from the raw YAML mapping."""
    # --- Fundamental constants ---
    c = raw["constants"]
    constants = FundamentalConstants(
        solar_luminosity_w=float(c["solar_luminosity_w"]),
        solar_temperature_k=float(c["solar_temperature_k"]),
        kiloparsec_m=float(c["kiloparsec_m"]),
    )

    # --- Galaxy shape ---
    gal = raw["galaxy"]
    galaxy = GalaxyConfig(
        disk_sigma_kpc=float(gal["disk_sigma_kpc"]),
        height_sigma_kpc=float(gal["height_sigma_kpc"]),
    )

    # --- Stellar model ---
    sm = raw["stellar_model"]
    ln10 = math.log(10.0)
    segments = tuple(
        LuminositySegment(
            upper_mass=math.inf if seg["upper_mass"] is None else float(seg["upper_mass"]),
            slope=float(seg["slope"]),
            intercept=float(seg["intercept_log10"]) * ln10,
        )
        for seg in sm["mass_luminosity"]
    )
    stellar_model = StellarModelConfig(
        mass_rate=float(sm["mass_rate"]),
        radius_slope=float(sm["radius_fit"]["slope"]),
        radius_intercept=float(sm["radius_fit"]["intercept"]),
        mass_luminosity=segments,
    )

    # --- Irradiance scale ---
    irr = raw["irradiance"]
    unit_w_m2 = float(irr["unit_w_m2"])
    if irr.get("scaling_constant") is None:
        scaling_constant = (
            constants.solar_luminosity_w / constants.kiloparsec_m**2 / unit_w_m2
        )
    else:
        scaling_constant = float(irr["scaling_constant"])

    # --- Output layout ---
    cm = raw["cubemap"]
    cubemap = CubemapConfig(
        resolution=int(cm["resolution"]),
        channel_layout=str(cm["channel_layout"]).upper(),
        storage_max=float(cm["storage_max"]),
    )

    # --- Sampling ---
    gen = raw["generation"]
    generation = GenerationConfig(
        star_count_thousands=int(gen["star_count_thousands"]),
        batch_size=int(gen["batch_size"]),
        seed=None if gen.get("seed") is None else int(gen["seed"]),
    )

    return StarboxConfig(
        constants=constants,
        galaxy=galaxy,
        stellar_model=stellar_model,
        irradiance_unit_w_m2=unit_w_m2,
        scaling_constant=scaling_constant,
        cubemap=cubemap,
        generation=generation,
        assumptions=_build_assumptions_registry(constants, stellar_model, unit_w_m2),
    )


def _build_assumptions_registry(
    constants: FundamentalConstants,
    stellar_model: StellarModelConfig,
    unit_w_m2: float,
) -> tuple[Assumption, ...]:
    """Build the documented assumptions registry."""
    bounds = ", ".join(
        f"{s.upper_mass:g}" for s in stellar_model.mass_luminosity if math.isfinite(s.upper_mass)
    )
    return (
        Assumption(
            "Solar Luminosity",
            f"{constants.solar_luminosity_w:.4g} W",
            "IAU 2015 Resolution B3",
            "exact (nominal)",
        ),
        Assumption(
            "Solar Temperature",
            f"{constants.solar_temperature_k:g} K",
            "IAU 2015 Resolution B3",
            "exact (nominal)",
        ),
        Assumption(
            "Mass Distribution",
            f"Exponential(λ={stellar_model.mass_rate:g})",
            "Simplification",
            "Unknown",
        ),
        Assumption(
            "Mass-Luminosity",
            f"{len(stellar_model.mass_luminosity)} segments, bounds [{bounds}]",
            "Eker et al., 2018 (main sequence)",
            "±10% in L",
        ),
        Assumption(
            "Mass-Radius",
            f"R = {stellar_model.radius_slope:g}·M + {stellar_model.radius_intercept:g}",
            "Linear fit anchored at the Sun",
            "±50% off the main sequence",
        ),
        Assumption("Irradiance Unit", f"{unit_w_m2:g} W/m²", "Storage range of IEEE half", "N/A"),
        Assumption("No Extinction", "Excluded", "Simplification", "N/A"),
        Assumption("Isotropic Emission", "L / 4π per sr", "Simplification", "N/A"),
    )


def _validate_config(config: StarboxConfig) -> None:
    """Validate physical and layout constraints on configuration values.

    Raises
    ------
    ValueError
        If any value is physically invalid.
    """
    if config.constants.solar_luminosity_w <= 0:
        raise ValueError("Solar luminosity must be positive.")
    if config.constants.solar_temperature_k <= 0:
        raise ValueError("Solar temperature must be positive.")
    if config.constants.kiloparsec_m <= 0:
        raise ValueError("Kiloparsec length must be positive.")
    if config.galaxy.height_sigma_kpc <= 0:
        raise ValueError("Disk height sigma must be positive.")
    if config.galaxy.height_sigma_kpc >= config.galaxy.disk_sigma_kpc:
        raise ValueError(
            f"Disk must be flattened: height sigma {config.galaxy.height_sigma_kpc} "
            f">= disk sigma {config.galaxy.disk_sigma_kpc}"
        )
    if config.stellar_model.mass_rate <= 0:
        raise ValueError("Mass distribution rate must be positive.")
    if config.stellar_model.radius_intercept <= 0:
        raise ValueError("Radius intercept must be positive (radius > 0 at M = 0).")
    if config.stellar_model.radius_slope < 0:
        raise ValueError("Radius slope cannot be negative.")

    segments = config.stellar_model.mass_luminosity
    if not segments:
        raise ValueError("Mass-luminosity table is empty.")
    if math.isfinite(segments[-1].upper_mass):
        raise ValueError("Last mass-luminosity segment must be open-ended (upper_mass: null).")
    bounds = [s.upper_mass for s in segments]
    if any(b <= a for a, b in zip(bounds, bounds[1:])):
        raise ValueError(f"Mass-luminosity bounds must be strictly increasing, got {bounds}")

    if config.irradiance_unit_w_m2 <= 0:
        raise ValueError("Irradiance unit must be positive.")
    if config.scaling_constant <= 0:
        raise ValueError("Irradiance scaling constant must be positive.")

    if config.cubemap.resolution < 2:
        raise ValueError(f"Resolution must be >= 2, got {config.cubemap.resolution}")
    if config.cubemap.channel_layout not in CHANNEL_LAYOUTS:
        raise ValueError(
            f"Channel layout must be one of {CHANNEL_LAYOUTS}, "
            f"got {config.cubemap.channel_layout!r}"
        )
    if config.cubemap.storage_max <= 0:
        raise ValueError("Storage maximum must be positive.")
    if config.cubemap.storage_max > _HALF_MAX:
        raise ValueError(
            f"Storage maximum {config.cubemap.storage_max:g} exceeds the float16 "
            f"maximum {_HALF_MAX:g}"
        )

    if config.generation.star_count_thousands < 0:
        raise ValueError(
            f"Star count cannot be negative, got {config.generation.star_count_thousands}"
        )
    if config.generation.batch_size < 1:
        raise ValueError("Batch size must be >= 1.")

    logger.debug("Configuration validation passed.")


def log_assumptions(config: StarboxConfig) -> None:
    """Log all documented model assumptions to the logger."""
    logger.info("=" * 70)
    logger.info("MODEL ASSUMPTIONS REGISTRY")
    logger.info("=" * 70)
    for i, a in enumerate(config.assumptions, 1):
        logger.info(
            "  [%02d] %-20s = %-32s | Source: %-34s | Uncertainty: %s",
            i,
            a.parameter,
            a.value,
            a.source,
            a.uncertainty,
        )
    logger.info("=" * 70)


def platform_info() -> dict[str, str]:
    """Platform and library versions relevant for reproducibility."""
    import numba

    return {
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "numpy": np.__version__,
        "numba": numba.__version__,
    }


def log_platform_info() -> None:
    """Log platform and library version information for reproducibility."""
    info = platform_info()
    logger.info("=" * 70)
    logger.info("PLATFORM INFORMATION (for reproducibility)")
    logger.info("=" * 70)
    logger.info("  Python:    %s", info["python"])
    logger.info("  Platform:  %s", info["platform"])
    logger.info("  NumPy:     %s", info["numpy"])
    logger.info("  Numba:     %s", info["numba"])
    logger.info("  Float16 max: %g", float(np.finfo(np.float16).max))
    logger.info("=" * 70)


def hash_array(arr: np.ndarray) -> str:
    """Compute SHA-256 hash of a NumPy array for reproducibility verification.

    Parameters
    ----------
    arr : np.ndarray
        Array to hash.

    Returns
    -------
    str
        Hex digest of the SHA-256 hash.
    """
    return hashlib.sha256(np.ascontiguousarray(arr).tobytes()).hexdigest()
