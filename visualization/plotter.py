"""Preview renderer for generated cube maps.

Generates quick-look PNG figures using matplotlib:
- Unwrapped cube (vertical cross, one face band per row block) in
  log-scaled irradiance, or tone-mapped color for RGB cube maps
- Luminosity-weighted temperature map (inferno colormap)
"""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend for headless rendering

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import LogNorm

from cubemap.projection import Face

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Color Configuration
# ---------------------------------------------------------------------------

_IRRADIANCE_CMAP = "gray"
_THERMAL_CMAP = "inferno"
_THERMAL_VMIN = 2000.0   # K
_THERMAL_VMAX = 30000.0  # K
_FLOOR = 1e-6
_DPI = 150


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label_faces(ax: plt.Axes, resolution: int) -> None:
    """Annotate each face band with its face name."""
    for face in Face:
        sign = "+" if face.name.startswith("P") else "−"
        ax.text(
            2, face.value * resolution + 2,
            f"{sign}{face.name[1]}",
            color="#51cf66", fontsize=8, va="top", ha="left",
        )
        if face.value:
            ax.axhline(face.value * resolution - 0.5, color="#444", linewidth=0.5)


def _save(fig: plt.Figure, output_path: Path | str | None, dpi: int, what: str) -> None:
    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, facecolor=fig.get_facecolor())
        logger.info("%s saved: %s", what, output_path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def plot_cube_cross(
    channels: dict[str, np.ndarray],
    title: str = "Starbox Cube Map",
    output_path: Path | str | None = None,
    dpi: int = _DPI,
) -> plt.Figure:
    """Plot the unwrapped cube map.

    Parameters
    ----------
    channels : dict[str, np.ndarray]
        Either ``Y``/``T`` or ``R``/``G``/``B`` channels, each (6·res, res).
    title : str
        Figure title.
    output_path : Path or str, optional
        If provided, save figure to this path.
    dpi : int
        Figure resolution.

    Returns
    -------
    matplotlib.figure.Figure
        The generated figure.
    """
    fig, ax = plt.subplots(1, 1, figsize=(4, 12), facecolor="#0f0f1a")
    ax.set_facecolor("#0f0f1a")

    if "Y" in channels:
        image = np.maximum(channels["Y"].astype(np.float32), _FLOOR)
        vmax = max(float(image.max()), _FLOOR * 10.0)
        im = ax.imshow(
            image,
            cmap=_IRRADIANCE_CMAP,
            norm=LogNorm(vmin=_FLOOR, vmax=vmax),
            interpolation="nearest",
        )
        cbar = fig.colorbar(im, ax=ax, label="Irradiance [stored units]", shrink=0.6)
        cbar.ax.yaxis.label.set_color("white")
        cbar.ax.tick_params(colors="white")
    else:
        rgb = np.stack([channels[c].astype(np.float32) for c in ("R", "G", "B")], axis=-1)
        # Reinhard tone map after log stretch
        stretched = np.log1p(rgb / _FLOOR)
        peak = float(stretched.max()) or 1.0
        mapped = stretched / peak
        ax.imshow(mapped / (1.0 + mapped) * 2.0, interpolation="nearest")

    resolution = next(iter(channels.values())).shape[1]
    _label_faces(ax, resolution)

    ax.set_title(title, fontsize=12, fontweight="bold", color="white")
    ax.set_xticks([])
    ax.set_yticks([])
    for spine in ax.spines.values():
        spine.set_edgecolor("#444")

    fig.tight_layout()
    _save(fig, output_path, dpi, "Cube preview")

    plt.close(fig)
    return fig


def plot_temperature_map(
    temperature: np.ndarray,
    irradiance: np.ndarray,
    title: str = "Luminosity-Weighted Temperature [K]",
    output_path: Path | str | None = None,
    vmin: float = _THERMAL_VMIN,
    vmax: float = _THERMAL_VMAX,
    dpi: int = _DPI,
) -> plt.Figure:
    """Plot the per-pixel temperature; unlit pixels are masked out."""
    fig, ax = plt.subplots(1, 1, figsize=(4, 12), facecolor="#0f0f1a")
    ax.set_facecolor("#0f0f1a")

    masked = np.ma.masked_where(irradiance <= 0, temperature.astype(np.float32))
    im = ax.imshow(masked, cmap=_THERMAL_CMAP, vmin=vmin, vmax=vmax, interpolation="nearest")

    cbar = fig.colorbar(im, ax=ax, label="Temperature [K]", shrink=0.6)
    cbar.ax.yaxis.label.set_color("white")
    cbar.ax.tick_params(colors="white")

    _label_faces(ax, temperature.shape[1])
    ax.set_title(title, fontsize=12, fontweight="bold", color="white")
    ax.set_xticks([])
    ax.set_yticks([])

    fig.tight_layout()
    _save(fig, output_path, dpi, "Temperature map")

    plt.close(fig)
    return fig


def generate_preview_plots(
    channels: dict[str, np.ndarray],
    output_path: Path | str,
    dpi: int = _DPI,
) -> list[Path]:
    """Render all preview figures next to ``output_path``.

    ``output_path`` receives the cube preview; a YT cube map additionally
    gets ``<stem>_temperature.png``.

    Returns
    -------
    list[Path]
        Paths to all generated plot files.
    """
    output_path = Path(output_path)
    saved: list[Path] = []

    plot_cube_cross(channels, output_path=output_path, dpi=dpi)
    saved.append(output_path)

    if "T" in channels and "Y" in channels:
        p = output_path.with_name(f"{output_path.stem}_temperature.png")
        plot_temperature_map(channels["T"], channels["Y"], output_path=p, dpi=dpi)
        saved.append(p)

    logger.info("Generated %d preview plots", len(saved))
    return saved
