"""Compose finalized buffer arrays into named half-float image channels.

Two layouts are supported:

- ``YT``:  ``Y`` = irradiance, ``T`` = luminosity-weighted temperature [K].
- ``RGB``: irradiance tinted by an approximate blackbody color of the
  pixel temperature.

The blackbody color uses Tanner Helland's piecewise fit (valid roughly
1000–40000 K), normalized so the brightest component of each color is at
most 1.
"""

from __future__ import annotations

import logging

import numpy as np

from cubemap.accumulator import HALF_MAX

logger = logging.getLogger(__name__)

CHANNEL_NAMES: dict[str, tuple[str, ...]] = {
    "YT": ("Y", "T"),
    "RGB": ("R", "G", "B"),
}


def blackbody_rgb(temperature_k: np.ndarray) -> np.ndarray:
    """Approximate blackbody color for each temperature.

    Parameters
    ----------
    temperature_k : np.ndarray
        Temperatures [K], any shape.

    Returns
    -------
    np.ndarray
        Colors in [0, 1], shape ``temperature_k.shape + (3,)``.
    """
    t = np.asarray(temperature_k, dtype=np.float64) / 100.0
    hot = t > 66.0

    with np.errstate(divide="ignore", invalid="ignore"):
        r = np.where(hot, 329.698727446 * np.power(np.maximum(t - 60.0, 1e-6), -0.1332047592), 255.0)
        g = np.where(
            hot,
            288.1221695283 * np.power(np.maximum(t - 60.0, 1e-6), -0.0755148492),
            99.4708025861 * np.log(np.maximum(t, 1e-6)) - 161.1195681661,
        )
        b = np.where(
            t >= 66.0,
            255.0,
            np.where(t <= 19.0, 0.0, 138.5177312231 * np.log(np.maximum(t - 10.0, 1e-6)) - 305.0447927307),
        )

    rgb = np.stack([r, g, b], axis=-1)
    return np.clip(rgb, 0.0, 255.0) / 255.0


def compose_channels(
    irradiance: np.ndarray,
    temperature: np.ndarray,
    layout: str = "YT",
) -> dict[str, np.ndarray]:
    """Build the named float16 channels for the output image.

    Parameters
    ----------
    irradiance : np.ndarray
        Finalized irradiance. Shape: (6·res, res).
    temperature : np.ndarray
        Finalized temperature [K]. Shape: (6·res, res).
    layout : str
        'YT' or 'RGB'.

    Returns
    -------
    dict[str, np.ndarray]
        Channel name → float16 array of shape (6·res, res).

    Raises
    ------
    ValueError
        If ``layout`` is unknown or the arrays disagree in shape.
    """
    layout = layout.upper()
    if layout not in CHANNEL_NAMES:
        raise ValueError(f"Unknown channel layout {layout!r}; expected one of {tuple(CHANNEL_NAMES)}")
    if irradiance.shape != temperature.shape:
        raise ValueError(
            f"irradiance {irradiance.shape} and temperature {temperature.shape} differ in shape"
        )

    if layout == "YT":
        return {
            "Y": np.asarray(irradiance, dtype=np.float16),
            "T": np.asarray(temperature, dtype=np.float16),
        }

    e = np.asarray(irradiance, dtype=np.float64)
    color = blackbody_rgb(temperature)
    rgb = np.where((e > 0.0)[..., None], e[..., None] * color, 0.0)
    rgb = np.minimum(rgb, HALF_MAX).astype(np.float16)

    logger.debug("Composed RGB channels: shape=%s", rgb.shape)
    return {name: np.ascontiguousarray(rgb[..., i]) for i, name in enumerate(CHANNEL_NAMES["RGB"])}
