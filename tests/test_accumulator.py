"""Tests for the streaming cube buffer accumulator.

Test Strategy
-------------
1. Weighted combine: E = a + b, T = (Ta·a + Tb·b) / (a + b), either order.
2. Zero-sum guard: temperature unchanged when the total is exactly zero.
3. Storage clamp: irradiance never exceeds the half-float maximum.
4. Batch kernel agrees with the per-star path; merge is associative.
5. Lifecycle: UNINITIALIZED → ACCUMULATING → FINALIZED, no way back.
"""

from __future__ import annotations

import numpy as np
import pytest

from cubemap.accumulator import HALF_MAX, BufferState, CubeBuffer
from cubemap.projection import address, project


@pytest.fixture
def buffer() -> CubeBuffer:
    return CubeBuffer(8)


@pytest.fixture
def star_batch() -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Random directions with irradiance and temperature per star."""
    rng = np.random.default_rng(2024)
    n = 400
    directions = rng.standard_normal((n, 3))
    irradiance = rng.exponential(2.0, size=n)
    temperature = rng.uniform(3000.0, 12000.0, size=n)
    return directions, irradiance, temperature


# ===================================================================
# WEIGHTED COMBINE
# ===================================================================


class TestWeightedCombine:
    """Irradiance-weighted running temperature."""

    def test_two_stars_same_pixel(self, buffer: CubeBuffer) -> None:
        buffer.accumulate(5, 2.0, 3000.0)
        buffer.accumulate(5, 6.0, 9000.0)

        px = buffer.pixel(5)
        assert px.irradiance == 8.0
        assert px.temperature == pytest.approx((3000.0 * 2.0 + 9000.0 * 6.0) / 8.0)

    def test_order_independent(self) -> None:
        """Accumulation order does not change the result."""
        first, second = CubeBuffer(4), CubeBuffer(4)

        first.accumulate(0, 2.0, 3000.0)
        first.accumulate(0, 6.0, 9000.0)
        second.accumulate(0, 6.0, 9000.0)
        second.accumulate(0, 2.0, 3000.0)

        assert first.pixel(0) == second.pixel(0)

    def test_first_star_sets_temperature(self, buffer: CubeBuffer) -> None:
        buffer.accumulate(0, 0.5, 5772.0)
        assert buffer.pixel(0).temperature == pytest.approx(5772.0)

    def test_untouched_pixels_stay_zero(self, buffer: CubeBuffer) -> None:
        buffer.accumulate(3, 1.0, 4000.0)
        assert np.count_nonzero(buffer.irradiance) == 1
        assert buffer.pixel(4).irradiance == 0.0


# ===================================================================
# NUMERIC GUARDS
# ===================================================================


class TestNumericGuards:
    """Zero-sum and overflow handling."""

    def test_zero_irradiance_keeps_temperature(self, buffer: CubeBuffer) -> None:
        """A zero-irradiance star into an empty pixel leaves T untouched (no NaN)."""
        buffer.accumulate(2, 0.0, 8000.0)

        px = buffer.pixel(2)
        assert px.irradiance == 0.0
        assert px.temperature == 0.0
        assert not np.isnan(buffer.temperature).any()

    def test_cancellation_to_zero_keeps_temperature(self, buffer: CubeBuffer) -> None:
        """A sum that cancels to exactly zero does not divide by zero."""
        buffer.accumulate(1, 1.5, 4500.0)
        buffer.accumulate(1, -1.5, 9000.0)

        px = buffer.pixel(1)
        assert px.irradiance == 0.0
        assert px.temperature == pytest.approx(4500.0)

    def test_clamped_to_half_max(self, buffer: CubeBuffer) -> None:
        buffer.accumulate(0, 60000.0, 5000.0)
        buffer.accumulate(0, 60000.0, 5000.0)

        assert buffer.pixel(0).irradiance == HALF_MAX

        irradiance, _ = buffer.finalize()
        assert np.isfinite(irradiance).all()
        assert float(irradiance.max()) == HALF_MAX

    def test_custom_storage_max(self) -> None:
        buf = CubeBuffer(4, storage_max=10.0)
        buf.accumulate(0, 25.0, 5000.0)
        assert buf.pixel(0).irradiance == 10.0

    def test_stats_ignore_clamp(self, buffer: CubeBuffer) -> None:
        """Diagnostics see raw star irradiance, not the clamped pixel."""
        buffer.accumulate(0, 60000.0, 5000.0)
        buffer.accumulate(0, 60000.0, 5000.0)
        buffer.accumulate(1, 1.0, 5000.0)

        stats = buffer.stats
        assert stats.brightest == 60000.0
        assert stats.total == 120001.0
        assert stats.count == 3

    def test_compensated_total(self) -> None:
        """The Neumaier total recovers small terms a naive float sum drops."""
        buf = CubeBuffer(4)
        values = [1.0, 1e100, 1.0, -1e100]
        for i, e in enumerate(values):
            buf.accumulate(i, e, 5000.0)
        assert buf.stats.total == 2.0

    def test_index_out_of_range(self, buffer: CubeBuffer) -> None:
        with pytest.raises(IndexError):
            buffer.accumulate(len(buffer), 1.0, 5000.0)


# ===================================================================
# BATCH KERNEL AND MERGE
# ===================================================================


class TestBatchAndMerge:
    """Compiled batch path and shard merging."""

    def test_batch_matches_per_star(self, star_batch: tuple) -> None:
        directions, irradiance, temperature = star_batch
        res = 8

        batched = CubeBuffer(res)
        batched.accumulate_stars(directions, irradiance, temperature)

        single = CubeBuffer(res)
        for d, e, t in zip(directions, irradiance, temperature):
            face, uv = project(d, res)
            single.accumulate(address(face, uv, res), e, t)

        np.testing.assert_array_equal(batched.irradiance, single.irradiance)
        np.testing.assert_array_equal(batched.temperature, single.temperature)
        assert batched.stats == single.stats

    def test_batch_is_deterministic(self, star_batch: tuple) -> None:
        a, b = CubeBuffer(8), CubeBuffer(8)
        a.accumulate_stars(*star_batch)
        b.accumulate_stars(*star_batch)

        assert a.irradiance.tobytes() == b.irradiance.tobytes()
        assert a.temperature.tobytes() == b.temperature.tobytes()

    def test_batch_shape_validation(self, buffer: CubeBuffer) -> None:
        with pytest.raises(ValueError):
            buffer.accumulate_stars(np.zeros((3, 2)), np.zeros(3), np.zeros(3))
        with pytest.raises(ValueError):
            buffer.accumulate_stars(np.zeros((3, 3)), np.zeros(2), np.zeros(3))

    def test_merge_matches_sequential(self, star_batch: tuple) -> None:
        """Two shards merged equal one buffer fed with all stars."""
        directions, irradiance, temperature = star_batch
        half = len(irradiance) // 2

        whole = CubeBuffer(8)
        whole.accumulate_stars(directions, irradiance, temperature)

        left, right = CubeBuffer(8), CubeBuffer(8)
        left.accumulate_stars(directions[:half], irradiance[:half], temperature[:half])
        right.accumulate_stars(directions[half:], irradiance[half:], temperature[half:])
        left.merge(right)

        np.testing.assert_allclose(left.irradiance, whole.irradiance, rtol=1e-12)
        np.testing.assert_allclose(left.temperature, whole.temperature, rtol=1e-9)
        assert left.stats.count == whole.stats.count
        assert left.stats.brightest == whole.stats.brightest
        assert left.stats.total == pytest.approx(whole.stats.total, rel=1e-12)

    def test_merge_associative(self, star_batch: tuple) -> None:
        directions, irradiance, temperature = star_batch
        parts = np.array_split(np.arange(len(irradiance)), 3)

        def shard(idx: np.ndarray) -> CubeBuffer:
            buf = CubeBuffer(8)
            buf.accumulate_stars(directions[idx], irradiance[idx], temperature[idx])
            return buf

        ab_c = shard(parts[0])
        ab_c.merge(shard(parts[1]))
        ab_c.merge(shard(parts[2]))

        bc = shard(parts[1])
        bc.merge(shard(parts[2]))
        a_bc = shard(parts[0])
        a_bc.merge(bc)

        np.testing.assert_allclose(ab_c.irradiance, a_bc.irradiance, rtol=1e-12)
        np.testing.assert_allclose(ab_c.temperature, a_bc.temperature, rtol=1e-9)

    def test_merge_resolution_mismatch(self) -> None:
        with pytest.raises(ValueError):
            CubeBuffer(4).merge(CubeBuffer(8))


# ===================================================================
# LIFECYCLE
# ===================================================================


class TestLifecycle:
    """Buffer state machine."""

    def test_states(self, buffer: CubeBuffer) -> None:
        assert buffer.state is BufferState.UNINITIALIZED
        buffer.accumulate(0, 1.0, 5000.0)
        assert buffer.state is BufferState.ACCUMULATING
        buffer.finalize()
        assert buffer.state is BufferState.FINALIZED

    def test_no_writes_after_finalize(self, buffer: CubeBuffer) -> None:
        buffer.finalize()
        with pytest.raises(RuntimeError):
            buffer.accumulate(0, 1.0, 5000.0)
        with pytest.raises(RuntimeError):
            buffer.accumulate_stars(np.ones((1, 3)), np.ones(1), np.ones(1))
        with pytest.raises(RuntimeError):
            buffer.merge(CubeBuffer(buffer.resolution))
        with pytest.raises(RuntimeError):
            buffer.finalize()

    def test_finalize_shape_and_dtype(self, buffer: CubeBuffer) -> None:
        buffer.accumulate(0, 1.0, 5000.0)
        irradiance, temperature = buffer.finalize()

        assert irradiance.shape == (6 * 8, 8)
        assert temperature.shape == (6 * 8, 8)
        assert irradiance.dtype == np.float16
        assert temperature.dtype == np.float16
        # index 0 is row 0, column 0
        assert float(irradiance[0, 0]) == 1.0
        assert float(temperature[0, 0]) == 5000.0

    def test_working_arrays_read_only(self, buffer: CubeBuffer) -> None:
        with pytest.raises(ValueError):
            buffer.irradiance[0] = 1.0

    def test_rejects_tiny_resolution(self) -> None:
        with pytest.raises(ValueError):
            CubeBuffer(1)

    @pytest.mark.parametrize("storage_max", [0.0, -1.0, HALF_MAX * 2.0, 1e9])
    def test_rejects_storage_max_outside_half_range(self, storage_max: float) -> None:
        """A clamp above the half maximum would finalize to inf."""
        with pytest.raises(ValueError):
            CubeBuffer(4, storage_max=storage_max)

    def test_storage_max_at_half_max_finalizes_finite(self) -> None:
        buf = CubeBuffer(4, storage_max=HALF_MAX)
        buf.accumulate(0, 1e9, 5000.0)
        irradiance, _ = buf.finalize()
        assert np.isfinite(irradiance).all()
        assert float(irradiance.max()) == HALF_MAX
