"""Streaming per-pixel accumulation of irradiance and temperature.

Each star is folded into exactly one pixel of the flat cube buffer with an
irradiance-weighted running average:

    E' = E + e
    T' = (T·E + t·e) / E'          if E' > 0, else T unchanged
    E' ← min(E', storage_max)

The combine is commutative and associative over (E, T·E) pairs, which is
what makes :meth:`CubeBuffer.merge` valid for shard-parallel generation.

Design Notes
------------
- **Single writer**: one :class:`CubeBuffer` per stream of stars; stars are
  folded strictly in draw order so output is bit-reproducible.
- **Precision**: float64 working arrays; stored irradiance is clamped to
  the storage maximum (65504 for IEEE half) on every write so finalization
  to float16 can never overflow to infinity.
- **Diagnostics**: brightest single-star irradiance and a Neumaier
  (error-compensated) running total, independent of per-pixel clamping.
- **Lifecycle**: ``UNINITIALIZED → ACCUMULATING → FINALIZED``; a finalized
  buffer rejects further writes.

References
----------
- Neumaier, A. (1974). "Rundungsfehleranalyse einiger Verfahren zur
  Summation endlicher Summen." ZAMM, 54, 39–51.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numba import njit

from cubemap.projection import address_components, project_components

logger = logging.getLogger(__name__)

HALF_MAX: float = float(np.finfo(np.float16).max)  # 65504.0

# Diagnostics vector layout
_STAT_MAX = 0
_STAT_SUM = 1
_STAT_COMP = 2
_STAT_COUNT = 3
_NUM_STATS = 4


# ===================================================================
# PIXEL UPDATE — Numba JIT
# ===================================================================


@njit(cache=True, fastmath=False)
def _accumulate_pixel(
    irradiance: np.ndarray,
    temperature: np.ndarray,
    index: int,
    star_irradiance: float,
    star_temperature: float,
    storage_max: float,
) -> None:
    """Fold one contribution into ``irradiance[index]``/``temperature[index]``.

    ``fastmath=False`` keeps the operation order fixed; reordering would
    break bit-reproducibility across runs.
    """
    old_e = irradiance[index]
    old_t = temperature[index]
    total = old_e + star_irradiance

    if total > 0.0:
        temperature[index] = (old_t * old_e + star_temperature * star_irradiance) / total

    if total > storage_max:
        total = storage_max
    irradiance[index] = total


@njit(cache=True, fastmath=False)
def _neumaier_add(stats: np.ndarray, value: float) -> None:
    """Add ``value`` to the compensated running total in ``stats``."""
    s = stats[_STAT_SUM]
    t = s + value
    if abs(s) >= abs(value):
        stats[_STAT_COMP] += (s - t) + value
    else:
        stats[_STAT_COMP] += (value - t) + s
    stats[_STAT_SUM] = t


@njit(cache=True, fastmath=False)
def _accumulate_batch(
    irradiance: np.ndarray,
    temperature: np.ndarray,
    directions: np.ndarray,
    star_irradiance: np.ndarray,
    star_temperature: np.ndarray,
    resolution: int,
    storage_max: float,
    stats: np.ndarray,
) -> None:
    """Project, address and accumulate a batch of stars in order.

    Parameters
    ----------
    irradiance, temperature : np.ndarray
        Flat cube buffer arrays. Shape: (resolution² · 6,).
    directions : np.ndarray
        Viewer → star vectors. Shape: (N, 3).
    star_irradiance : np.ndarray
        Irradiance at the viewer per star. Shape: (N,).
    star_temperature : np.ndarray
        Effective temperature per star [K]. Shape: (N,).
    resolution : int
        Cube edge length [px].
    storage_max : float
        Clamp for stored irradiance.
    stats : np.ndarray
        Diagnostics vector [max, sum, compensation, count], updated in place.
    """
    n = directions.shape[0]
    for i in range(n):
        face, u, v = project_components(
            directions[i, 0], directions[i, 1], directions[i, 2], resolution
        )
        index = address_components(face, u, v, resolution)
        e = star_irradiance[i]
        _accumulate_pixel(irradiance, temperature, index, e, star_temperature[i], storage_max)

        if e > stats[_STAT_MAX]:
            stats[_STAT_MAX] = e
        _neumaier_add(stats, e)
        stats[_STAT_COUNT] += 1.0


# ---------------------------------------------------------------------------
# Buffer
# ---------------------------------------------------------------------------


class BufferState(Enum):
    UNINITIALIZED = "uninitialized"
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class PixelRecord:
    """Accumulated value of one pixel; ``temperature`` is meaningful only if irradiance > 0."""

    irradiance: float
    temperature: float


@dataclass(frozen=True)
class AccumulationStats:
    """Diagnostics across all accumulated stars.

    Attributes
    ----------
    brightest : float
        Largest single-star irradiance seen.
    total : float
        Compensated sum of all star irradiances (before pixel clamping).
    count : int
        Number of stars folded in.
    """

    brightest: float
    total: float
    count: int


class CubeBuffer:
    """Flat cube map buffer of ``resolution² · 6`` pixel records.

    Parameters
    ----------
    resolution : int
        Cube edge length [px].
    storage_max : float
        Largest stored irradiance, at most the IEEE half max (the default).
    """

    def __init__(self, resolution: int, storage_max: float = HALF_MAX) -> None:
        if resolution < 2:
            raise ValueError(f"resolution must be >= 2, got {resolution}")
        if not 0.0 < storage_max <= HALF_MAX:
            raise ValueError(f"storage_max must be in (0, {HALF_MAX:g}], got {storage_max}")

        self.resolution = int(resolution)
        self.storage_max = float(storage_max)
        self._irradiance = np.zeros(self.num_pixels, dtype=np.float64)
        self._temperature = np.zeros(self.num_pixels, dtype=np.float64)
        self._stats = np.zeros(_NUM_STATS, dtype=np.float64)
        self._state = BufferState.UNINITIALIZED

        logger.debug(
            "CubeBuffer allocated: %d² × 6 = %d pixels (%.1f MiB working set)",
            self.resolution,
            self.num_pixels,
            2 * self._irradiance.nbytes / (1024 * 1024),
        )

    def __len__(self) -> int:
        return self.num_pixels

    @property
    def num_pixels(self) -> int:
        return self.resolution * self.resolution * 6

    @property
    def state(self) -> BufferState:
        return self._state

    @property
    def irradiance(self) -> np.ndarray:
        """Read-only view of the working irradiance array."""
        view = self._irradiance.view()
        view.flags.writeable = False
        return view

    @property
    def temperature(self) -> np.ndarray:
        """Read-only view of the working temperature array."""
        view = self._temperature.view()
        view.flags.writeable = False
        return view

    @property
    def stats(self) -> AccumulationStats:
        return AccumulationStats(
            brightest=float(self._stats[_STAT_MAX]),
            total=float(self._stats[_STAT_SUM] + self._stats[_STAT_COMP]),
            count=int(self._stats[_STAT_COUNT]),
        )

    def pixel(self, index: int) -> PixelRecord:
        return PixelRecord(float(self._irradiance[index]), float(self._temperature[index]))

    def _begin_write(self) -> None:
        if self._state is BufferState.FINALIZED:
            raise RuntimeError("CubeBuffer is finalized; no further accumulation allowed")
        self._state = BufferState.ACCUMULATING

    def accumulate(self, index: int, star_irradiance: float, star_temperature: float) -> None:
        """Fold a single star contribution into pixel ``index``."""
        if not 0 <= index < self.num_pixels:
            raise IndexError(f"pixel index {index} outside [0, {self.num_pixels})")
        self._begin_write()

        e = float(star_irradiance)
        _accumulate_pixel(
            self._irradiance, self._temperature, int(index), e, float(star_temperature),
            self.storage_max,
        )
        if e > self._stats[_STAT_MAX]:
            self._stats[_STAT_MAX] = e
        _neumaier_add(self._stats, e)
        self._stats[_STAT_COUNT] += 1.0

    def accumulate_stars(
        self,
        directions: np.ndarray,
        irradiance: np.ndarray,
        temperature: np.ndarray,
    ) -> None:
        """Project and accumulate a batch of stars in order.

        Parameters
        ----------
        directions : np.ndarray
            Viewer → star vectors. Shape: (N, 3).
        irradiance : np.ndarray
            Per-star irradiance at the viewer. Shape: (N,).
        temperature : np.ndarray
            Per-star temperature [K]. Shape: (N,).
        """
        directions = np.ascontiguousarray(directions, dtype=np.float64)
        irradiance = np.ascontiguousarray(irradiance, dtype=np.float64)
        temperature = np.ascontiguousarray(temperature, dtype=np.float64)

        if directions.ndim != 2 or directions.shape[1] != 3:
            raise ValueError(f"directions must have shape (N, 3), got {directions.shape}")
        if irradiance.shape != (directions.shape[0],) or temperature.shape != irradiance.shape:
            raise ValueError(
                f"per-star arrays must have shape ({directions.shape[0]},), "
                f"got {irradiance.shape} and {temperature.shape}"
            )
        self._begin_write()

        _accumulate_batch(
            self._irradiance,
            self._temperature,
            directions,
            irradiance,
            temperature,
            self.resolution,
            self.storage_max,
            self._stats,
        )

    def merge(self, other: CubeBuffer) -> None:
        """Fold another buffer of the same resolution into this one.

        Equivalent to accumulating every star of ``other`` into ``self``,
        up to floating-point rounding and the storage clamp.
        """
        if other.resolution != self.resolution:
            raise ValueError(
                f"cannot merge resolution {other.resolution} into {self.resolution}"
            )
        self._begin_write()

        old_e = self._irradiance
        old_t = self._temperature
        total = old_e + other._irradiance
        weighted = old_t * old_e + other._temperature * other._irradiance

        positive = total > 0.0
        safe_total = np.where(positive, total, 1.0)
        self._temperature = np.where(positive, weighted / safe_total, old_t)
        self._irradiance = np.minimum(total, self.storage_max)

        if other._stats[_STAT_MAX] > self._stats[_STAT_MAX]:
            self._stats[_STAT_MAX] = other._stats[_STAT_MAX]
        _neumaier_add(self._stats, float(other._stats[_STAT_SUM]))
        self._stats[_STAT_COMP] += other._stats[_STAT_COMP]
        self._stats[_STAT_COUNT] += other._stats[_STAT_COUNT]

    def finalize(self) -> tuple[np.ndarray, np.ndarray]:
        """Convert to storage precision and close the buffer.

        Returns
        -------
        irradiance : np.ndarray
            float16, shape (6·resolution, resolution).
        temperature : np.ndarray
            float16, shape (6·resolution, resolution).
        """
        if self._state is BufferState.FINALIZED:
            raise RuntimeError("CubeBuffer already finalized")
        self._state = BufferState.FINALIZED

        shape = (6 * self.resolution, self.resolution)
        irradiance = np.minimum(self._irradiance, self.storage_max).astype(np.float16)
        temperature = np.minimum(self._temperature, HALF_MAX).astype(np.float16)

        lit = int(np.count_nonzero(self._irradiance))
        logger.info(
            "CubeBuffer finalized: %d / %d pixels lit (%.2f%%)",
            lit,
            self.num_pixels,
            100.0 * lit / self.num_pixels,
        )

        return irradiance.reshape(shape), temperature.reshape(shape)
