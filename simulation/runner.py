"""Generation Runner — star sampling loop feeding the cube accumulator.

Orchestrates the full generation pipeline:
1. Seed the random stream, sample the galaxy orientation and the viewer
2. Allocate the cube buffer
3. Batch loop: sample stars → irradiance at viewer → project + accumulate
4. Finalize the buffer into output channels

Notes
-----
Each star contributes

    E = I / |p − p_view|² · k

to the pixel its direction falls in, where I = L / 4π is its radiant
intensity [L_sun/sr], p − p_view its offset from the viewer [kpc], and k
the configured scaling constant (L_sun/sr/kpc² → stored irradiance unit).

One ``numpy.random.Generator`` drives everything in a fixed order (galaxy,
viewer, then batches of positions and masses), so a given seed, star count
and batch size always reproduce the same buffer bit for bit.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import numpy as np

from cubemap.accumulator import AccumulationStats, CubeBuffer
from cubemap.channels import compose_channels
from starfield.constants import StarboxConfig, hash_array
from starfield.galaxy import Galaxy, sample_galaxy, sample_stars, sample_viewer
from starfield.stellar_model import StellarModel, irradiance_from_intensity

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result Container
# ---------------------------------------------------------------------------


@dataclass
class GenerationResult:
    """Container for generation output.

    Attributes
    ----------
    channels : dict[str, np.ndarray]
        Finalized float16 channels, each of shape (6·res, res).
    galaxy : Galaxy
        Sampled galaxy orientation.
    viewer : np.ndarray
        Observer position [kpc]. Shape: (3,).
    stats : AccumulationStats
        Brightest single-star irradiance, compensated total, star count.
    metadata : dict
        Run parameters, timing and channel hashes.
    """

    channels: dict[str, np.ndarray]
    galaxy: Galaxy
    viewer: np.ndarray
    stats: AccumulationStats
    metadata: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Generation Runner
# ---------------------------------------------------------------------------


class StarboxRunner:
    """Main runner turning a configuration into a finished cube map.

    Parameters
    ----------
    config : StarboxConfig
        Full generator configuration (CLI overrides already applied).
    """

    def __init__(self, config: StarboxConfig) -> None:
        self._config = config
        self._model = StellarModel.from_config(config)
        self._scaling_constant = config.scaling_constant

        logger.info(
            "StarboxRunner initialized: res=%d, layout=%s, k=%.4g, σ_disk=%.1f kpc, σ_height=%.1f kpc",
            config.cubemap.resolution,
            config.cubemap.channel_layout,
            self._scaling_constant,
            config.galaxy.disk_sigma_kpc,
            config.galaxy.height_sigma_kpc,
        )

    def generate(self, rng: np.random.Generator, star_count: int) -> tuple[CubeBuffer, Galaxy, np.ndarray]:
        """Sample a galaxy and fold ``star_count`` stars into a new buffer.

        Returns
        -------
        buffer : CubeBuffer
            Buffer in the ACCUMULATING state (UNINITIALIZED if no stars).
        galaxy : Galaxy
            Sampled orientation.
        viewer : np.ndarray
            Observer position [kpc].
        """
        cfg = self._config
        galaxy = sample_galaxy(rng, cfg.galaxy)
        viewer = sample_viewer(galaxy, rng)
        buffer = CubeBuffer(cfg.cubemap.resolution, storage_max=cfg.cubemap.storage_max)

        batch_size = cfg.generation.batch_size
        num_batches = -(-star_count // batch_size)
        report_every = max(1, num_batches // 10)

        for batch_i in range(num_batches):
            count = min(batch_size, star_count - batch_i * batch_size)
            stars = sample_stars(galaxy, rng, count, self._model)

            directions = stars.positions - viewer
            distance_sq = np.einsum("ij,ij->i", directions, directions)
            irradiance = irradiance_from_intensity(
                stars.intensity, distance_sq, self._scaling_constant
            )
            buffer.accumulate_stars(directions, irradiance, stars.temperature)

            if batch_i % report_every == 0:
                logger.info(
                    "  Batch %d/%d: %d stars folded, brightest=%.4g",
                    batch_i + 1,
                    num_batches,
                    buffer.stats.count,
                    buffer.stats.brightest,
                )

        return buffer, galaxy, viewer

    def run(self, seed: int | None = None) -> GenerationResult:
        """Execute the full generation pipeline.

        Parameters
        ----------
        seed : int, optional
            Random seed. Default: the configured seed (fresh entropy if None).

        Returns
        -------
        GenerationResult
            Finalized channels and diagnostics.
        """
        cfg = self._config
        if seed is None:
            seed = cfg.generation.seed
        if seed is None:
            seed = int(np.random.SeedSequence().entropy % (2**63))
        star_count = cfg.generation.star_count

        logger.info(
            "Starting generation: %d stars, seed=%d, batch=%d",
            star_count,
            seed,
            cfg.generation.batch_size,
        )
        wall_start = time.perf_counter()

        logger.info("Step 1/3: Sampling galaxy and accumulating stars...")
        rng = np.random.default_rng(seed)
        buffer, galaxy, viewer = self.generate(rng, star_count)
        stats = buffer.stats

        logger.info("Step 2/3: Finalizing cube buffer...")
        irradiance, temperature = buffer.finalize()

        logger.info("Step 3/3: Composing %s channels...", cfg.cubemap.channel_layout)
        channels = compose_channels(irradiance, temperature, cfg.cubemap.channel_layout)

        wall_elapsed = time.perf_counter() - wall_start
        logger.info(
            "Generation complete: %.1f seconds wall time (%.0f stars/s)",
            wall_elapsed,
            star_count / wall_elapsed if wall_elapsed > 0 else 0.0,
        )

        metadata = {
            "seed": seed,
            "resolution": cfg.cubemap.resolution,
            "channel_layout": cfg.cubemap.channel_layout,
            "star_count": star_count,
            "batch_size": cfg.generation.batch_size,
            "scaling_constant": self._scaling_constant,
            "irradiance_unit_w_m2": cfg.irradiance_unit_w_m2,
            "galaxy_quaternion_wxyz": galaxy.quaternion,
            "viewer_kpc": viewer,
            "brightest_irradiance": stats.brightest,
            "total_irradiance": stats.total,
            "wall_time_s": wall_elapsed,
            "channel_sha256": {name: hash_array(arr) for name, arr in channels.items()},
        }

        return GenerationResult(
            channels=channels,
            galaxy=galaxy,
            viewer=viewer,
            stats=stats,
            metadata=metadata,
        )
