"""Dominant-axis cube projection and vertical-cross pixel addressing.

Maps a 3D direction to one of six cube faces plus a continuous face-local
UV coordinate, then maps (face, UV) to a linear index into the flat cube
buffer. The scalar kernels are compiled with Numba ``@njit(cache=True)``
so the accumulator's batch loop can call them without leaving machine code.

Design Notes
------------
- **Face selection**: largest |component| wins; ties prefer X, then Y.
  The zero vector resolves to +X, UV (0, 0).
- **UV**: the two remaining components divided by the *signed* dominant
  component, remapped from [-1, 1] to [0, res - 1]. Quantization is
  truncation, never rounding.
- **Addressing**: the buffer is ``resolution`` wide and ``6·resolution``
  tall; each face owns a square band of rows starting at
  ``y_min = slot·resolution``. Every face's orientation inside its band
  is one row of ``_FACE_TRANSFORMS``:

      x = x_base·x_max + x_u·u + x_v·v
      y = y_min + y_base·(resolution − 1) + y_u·u + y_v·v

  ====  ==========  ============
  Face  x           y
  ====  ==========  ============
  +X    v           y_max − u
  −X    x_max − v   y_max − u
  +Y    u           y_max − v
  −Y    u           y_min + v
  +Z    x_max − u   y_max − v
  −Z    u           y_max − v
  ====  ==========  ============
"""

from __future__ import annotations

import logging
from enum import IntEnum

import numpy as np
from numba import njit

logger = logging.getLogger(__name__)


class Face(IntEnum):
    """Cube face; the value is the face's row band in the vertical cross."""

    PX = 0
    NX = 1
    PY = 2
    NY = 3
    PZ = 4
    NZ = 5


# ===================================================================
# FACE TRANSFORM TABLE — one row per face, indexed by Face value
# ===================================================================
_SLOT = 0
_X_BASE = 1
_X_U = 2
_X_V = 3
_Y_BASE = 4
_Y_U = 5
_Y_V = 6

_FACE_TRANSFORMS = np.array([
    # slot  x_base  x_u  x_v  y_base  y_u  y_v
    [0,     0,      0,   1,   1,      -1,  0],   # +X
    [1,     1,      0,   -1,  1,      -1,  0],   # −X
    [2,     0,      1,   0,   1,      0,   -1],  # +Y
    [3,     0,      1,   0,   0,      0,   1],   # −Y
    [4,     1,      -1,  0,   1,      0,   -1],  # +Z
    [5,     0,      1,   0,   1,      0,   -1],  # −Z
], dtype=np.int64)


# ===================================================================
# PROJECTION — Numba JIT
# ===================================================================


@njit(cache=True, fastmath=False)
def project_components(x: float, y: float, z: float, resolution: int) -> tuple:
    """Project a direction onto the cube.

    Parameters
    ----------
    x, y, z : float
        Direction components. Need not be normalized.
    resolution : int
        Cube edge length [px].

    Returns
    -------
    tuple[int, float, float]
        (face value, u, v) with u, v ∈ [0, resolution − 1].
    """
    ax = abs(x)
    ay = abs(y)
    az = abs(z)
    scale = (resolution - 1) / 2.0

    if ax >= ay and ax >= az:
        if ax == 0.0:
            return 0, 0.0, 0.0
        u = (y / x + 1.0) * scale
        v = (z / x + 1.0) * scale
        face = 0 if x > 0.0 else 1
    elif ay >= az:
        u = (x / y + 1.0) * scale
        v = (z / y + 1.0) * scale
        face = 2 if y > 0.0 else 3
    else:
        u = (x / z + 1.0) * scale
        v = (y / z + 1.0) * scale
        face = 4 if z > 0.0 else 5

    return face, u, v


@njit(cache=True, fastmath=False)
def pixel_components(face: int, u: float, v: float, resolution: int) -> tuple:
    """Global (x, y) buffer coordinates for a face-local UV (truncated)."""
    iu = int(u)
    iv = int(v)
    t = _FACE_TRANSFORMS[face]
    extent = resolution - 1

    px = t[_X_BASE] * extent + t[_X_U] * iu + t[_X_V] * iv
    py = t[_SLOT] * resolution + t[_Y_BASE] * extent + t[_Y_U] * iu + t[_Y_V] * iv
    return px, py


@njit(cache=True, fastmath=False)
def address_components(face: int, u: float, v: float, resolution: int) -> int:
    """Linear buffer index ``x + y·resolution`` for a face-local UV."""
    px, py = pixel_components(face, u, v, resolution)
    return px + py * resolution


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def project(direction: np.ndarray, resolution: int) -> tuple[Face, tuple[float, float]]:
    """Project a 3D direction to a cube face and continuous UV.

    Parameters
    ----------
    direction : np.ndarray
        Direction vector. Shape: (3,).
    resolution : int
        Cube edge length [px].

    Returns
    -------
    face : Face
        Selected cube face.
    uv : tuple[float, float]
        Face-local coordinates in [0, resolution − 1].
    """
    x, y, z = (float(c) for c in direction)
    face, u, v = project_components(x, y, z, int(resolution))
    return Face(face), (u, v)


def pixel_coordinates(face: Face, uv: tuple[float, float], resolution: int) -> tuple[int, int]:
    """Global (x, y) buffer coordinates for a face-local UV."""
    px, py = pixel_components(int(face), float(uv[0]), float(uv[1]), int(resolution))
    return int(px), int(py)


def address(face: Face, uv: tuple[float, float], resolution: int) -> int:
    """Linear index into a flat buffer of length ``resolution² · 6``."""
    return int(address_components(int(face), float(uv[0]), float(uv[1]), int(resolution)))
