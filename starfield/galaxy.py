"""Galaxy orientation and star sampling.

A galaxy is a flattened Gaussian disk of stars with a random orientation.
The orientation is a uniformly distributed rotation, obtained by
normalizing a quaternion of four independent standard-normal draws
(Muller 1959; Marsaglia 1972).

Disk frame (before rotation):

    x, z ~ N(0, σ_disk)      in-plane
    y    ~ N(0, σ_height)    out-of-plane, σ_height < σ_disk

References
----------
- Shoemake, K. (1992). "Uniform random rotations." Graphics Gems III,
  pp. 124–132.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from starfield.constants import GalaxyConfig
from starfield.stellar_model import StellarModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Galaxy:
    """Orientation of the stellar disk.

    Attributes
    ----------
    quaternion : tuple[float, float, float, float]
        Unit rotation quaternion (w, x, y, z).
    disk_sigma_kpc : float
        In-plane position spread [kpc].
    height_sigma_kpc : float
        Out-of-plane position spread [kpc].
    """

    quaternion: tuple[float, float, float, float]
    disk_sigma_kpc: float
    height_sigma_kpc: float

    @property
    def rotation_matrix(self) -> np.ndarray:
        """3×3 rotation matrix equivalent to the unit quaternion."""
        return quaternion_to_matrix(self.quaternion)

    def rotate(self, positions: np.ndarray) -> np.ndarray:
        """Rotate disk-frame positions (shape (N, 3)) into the sky frame."""
        return positions @ self.rotation_matrix.T


@dataclass(frozen=True)
class Star:
    """A single star, consumed immediately after sampling.

    Attributes
    ----------
    position : np.ndarray
        Sky-frame position [kpc]. Shape: (3,).
    mass : float
        [M_sun].
    radius : float
        [R_sun].
    luminosity : float
        [L_sun].
    temperature : float
        Effective temperature [K].
    intensity : float
        Radiant intensity [L_sun/sr].
    """

    position: np.ndarray
    mass: float
    radius: float
    luminosity: float
    temperature: float
    intensity: float


@dataclass
class StarBatch:
    """Vectorized counterpart of :class:`Star`; every array has length N."""

    positions: np.ndarray
    mass: np.ndarray
    radius: np.ndarray
    luminosity: np.ndarray
    temperature: np.ndarray
    intensity: np.ndarray

    def __len__(self) -> int:
        return self.mass.shape[0]

    def star(self, i: int) -> Star:
        return Star(
            position=self.positions[i].copy(),
            mass=float(self.mass[i]),
            radius=float(self.radius[i]),
            luminosity=float(self.luminosity[i]),
            temperature=float(self.temperature[i]),
            intensity=float(self.intensity[i]),
        )


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


def quaternion_to_matrix(q: tuple[float, float, float, float]) -> np.ndarray:
    """Convert a unit quaternion (w, x, y, z) to a rotation matrix."""
    w, x, y, z = q
    return np.array([
        [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - z * w), 2.0 * (x * z + y * w)],
        [2.0 * (x * y + z * w), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - x * w)],
        [2.0 * (x * z - y * w), 2.0 * (y * z + x * w), 1.0 - 2.0 * (x * x + y * y)],
    ], dtype=np.float64)


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------


def sample_galaxy(rng: np.random.Generator, config: GalaxyConfig) -> Galaxy:
    """Draw a uniformly random galaxy orientation.

    Four standard-normal variates are drawn in the order x, y, z, w and
    normalized. If all four are exactly zero the identity rotation is used.

    Parameters
    ----------
    rng : np.random.Generator
        Random stream.
    config : GalaxyConfig
        Disk shape.

    Returns
    -------
    Galaxy
        Immutable galaxy orientation.
    """
    x, y, z, w = rng.standard_normal(4)
    norm = float(np.sqrt(w * w + x * x + y * y + z * z))

    if norm == 0.0:
        logger.warning("Degenerate quaternion draw; using identity rotation")
        quaternion = (1.0, 0.0, 0.0, 0.0)
    else:
        quaternion = (float(w / norm), float(x / norm), float(y / norm), float(z / norm))

    logger.debug("Galaxy orientation q=(%.4f, %.4f, %.4f, %.4f)", *quaternion)

    return Galaxy(
        quaternion=quaternion,
        disk_sigma_kpc=config.disk_sigma_kpc,
        height_sigma_kpc=config.height_sigma_kpc,
    )


def sample_positions(galaxy: Galaxy, rng: np.random.Generator, count: int) -> np.ndarray:
    """Draw ``count`` sky-frame star positions [kpc]. Shape: (count, 3)."""
    scale = np.array(
        [galaxy.disk_sigma_kpc, galaxy.height_sigma_kpc, galaxy.disk_sigma_kpc],
        dtype=np.float64,
    )
    disk = rng.normal(0.0, scale, size=(count, 3))
    return galaxy.rotate(disk)


def sample_stars(
    galaxy: Galaxy,
    rng: np.random.Generator,
    count: int,
    model: StellarModel,
) -> StarBatch:
    """Draw ``count`` stars with positions and physical attributes.

    Draw order: all positions (count × 3 normals), then all masses.

    Parameters
    ----------
    galaxy : Galaxy
        Disk orientation and shape.
    rng : np.random.Generator
        Random stream.
    count : int
        Number of stars.
    model : StellarModel
        Mass → radius/luminosity/temperature relations.

    Returns
    -------
    StarBatch
        Arrays of length ``count``.
    """
    positions = sample_positions(galaxy, rng, count)
    mass = model.sample_mass(rng, count)
    radius = model.radius(mass)
    luminosity = model.luminosity(mass)

    return StarBatch(
        positions=positions,
        mass=mass,
        radius=radius,
        luminosity=luminosity,
        temperature=model.temperature(luminosity, radius),
        intensity=model.intensity(luminosity),
    )


def sample_star(galaxy: Galaxy, rng: np.random.Generator, model: StellarModel) -> Star:
    """Draw a single star; identical to the first row of a one-star batch."""
    return sample_stars(galaxy, rng, 1, model).star(0)


def sample_viewer(galaxy: Galaxy, rng: np.random.Generator) -> np.ndarray:
    """Place the observer at a position drawn from the disk itself. Shape: (3,)."""
    return sample_positions(galaxy, rng, 1)[0]
