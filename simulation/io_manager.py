"""Output adapter — write the finished cube map as an OpenEXR image.

The image is a single scanline OpenEXR file, ``resolution`` pixels wide and
``6·resolution`` tall, tagged as a cube environment map. Every channel is
stored as HALF (IEEE 754 binary16):

    YT layout   →  Y (irradiance), T (temperature [K])
    RGB layout  →  R, G, B (irradiance tinted by blackbody color)

An optional JSON sidecar records the run parameters, diagnostics and a
SHA-256 of each channel so a run can be verified for bit-reproducibility.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np
import OpenEXR

from simulation.errors import EncoderError, OutputOpenError, WriteError

logger = logging.getLogger(__name__)

_BYTES_PER_HALF = 2


def estimate_size_mib(resolution: int, num_channels: int) -> float:
    """Uncompressed size of the cube map image [MiB]."""
    return resolution * resolution * 6 * num_channels * _BYTES_PER_HALF / (1024 * 1024)


def write_cubemap_exr(
    path: Path | str,
    channels: dict[str, np.ndarray],
) -> Path:
    """Write named half-float channels as a cube-map OpenEXR image.

    Parameters
    ----------
    path : Path or str
        Destination file. Its parent directory must exist.
    channels : dict[str, np.ndarray]
        Channel name → float16 array of shape (6·res, res).

    Returns
    -------
    Path
        The written file.

    Raises
    ------
    OutputOpenError
        If the destination cannot be created.
    EncoderError
        If the header or channel layout is rejected by the encoder.
    WriteError
        If the pixel data cannot be flushed.
    """
    path = Path(path)

    # Destination must be creatable before any encoding work is done
    try:
        with open(path, "wb"):
            pass
    except OSError as exc:
        raise OutputOpenError(f"failed to open output file {path}") from exc

    try:
        _check_channels(channels)
        header = {
            "compression": OpenEXR.ZIP_COMPRESSION,
            "type": OpenEXR.scanlineimage,
            "envmap": OpenEXR.ENVMAP_CUBE,
        }
        exr_file = OpenEXR.File(
            header,
            {name: np.ascontiguousarray(arr, dtype=np.float16) for name, arr in channels.items()},
        )
    except (RuntimeError, TypeError, ValueError) as exc:
        raise EncoderError("failed to initialize encoder") from exc

    try:
        with exr_file:
            exr_file.write(str(path))
    except (OSError, RuntimeError) as exc:
        raise WriteError(f"failed to output data to {path}") from exc

    first = next(iter(channels.values()))
    logger.info(
        "Wrote %s: %d x %d, channels=%s",
        path,
        first.shape[1],
        first.shape[0],
        ",".join(channels),
    )
    return path


def read_cubemap_exr(path: Path | str) -> dict[str, np.ndarray]:
    """Read every channel of a cube-map OpenEXR image.

    Returns
    -------
    dict[str, np.ndarray]
        Channel name → array of shape (6·res, res).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cube map not found: {path}")

    with OpenEXR.File(str(path), separate_channels=True) as exr_file:
        channels = {name: np.array(ch.pixels) for name, ch in exr_file.channels().items()}

    logger.debug("Read %s: channels=%s", path, ",".join(channels))
    return channels


def save_metadata(path: Path | str, metadata: dict) -> Path:
    """Write run metadata as JSON (NumPy types converted to Python natives)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    safe_meta = _sanitize_for_json(metadata)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(safe_meta, f, indent=2, ensure_ascii=False)

    logger.info("Saved metadata: %s (%d keys)", path, len(safe_meta))
    return path


def load_metadata(path: Path | str) -> dict:
    """Load run metadata written by :func:`save_metadata`."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _check_channels(channels: dict[str, np.ndarray]) -> None:
    """Reject channel sets that cannot form one cube-map image."""
    if not channels:
        raise ValueError("no channels to write")

    shapes = {arr.shape for arr in channels.values()}
    if len(shapes) != 1:
        raise ValueError(f"channels differ in shape: {sorted(shapes)}")

    (shape,) = shapes
    if len(shape) != 2 or shape[0] != 6 * shape[1]:
        raise ValueError(f"cube map channels must have shape (6·res, res), got {shape}")


def _sanitize_for_json(obj: object) -> object:
    """Recursively convert NumPy types and other non-JSON types to Python natives."""
    if isinstance(obj, dict):
        return {k: _sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize_for_json(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, Path):
        return str(obj)
    return obj
