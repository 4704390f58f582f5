"""End-to-end tests: runner, channel composition, OpenEXR output, CLI.

Test Strategy
-------------
1. Runner: a fixed seed reproduces the cube map bit for bit.
2. Channels: YT passthrough, RGB tinted by blackbody color.
3. Output adapter: EXR round trip; open/encoder failures map to the
   error taxonomy.
4. CLI: exit code 0 on success, 1 on terminal errors, 2 on bad arguments.
"""

from __future__ import annotations

import json
from dataclasses import replace

import numpy as np
import OpenEXR
import pytest

from cubemap.channels import blackbody_rgb, compose_channels
from simulation.errors import EncoderError, OutputOpenError, StarboxError, WriteError
from simulation.io_manager import (
    estimate_size_mib,
    load_metadata,
    read_cubemap_exr,
    save_metadata,
    write_cubemap_exr,
)
from simulation.runner import StarboxRunner
from starfield.constants import StarboxConfig


@pytest.fixture
def small_config(starbox_config: StarboxConfig) -> StarboxConfig:
    """16² cube, 2000 stars in four batches."""
    return replace(
        starbox_config,
        generation=replace(starbox_config.generation, batch_size=512),
    )


# ===================================================================
# RUNNER
# ===================================================================


class TestRunner:
    """Full generation pipeline."""

    def test_bit_reproducible(self, small_config: StarboxConfig) -> None:
        first = StarboxRunner(small_config).run()
        second = StarboxRunner(small_config).run()

        assert set(first.channels) == {"Y", "T"}
        for name in first.channels:
            assert first.channels[name].tobytes() == second.channels[name].tobytes()
        assert first.metadata["channel_sha256"] == second.metadata["channel_sha256"]
        assert first.stats == second.stats

    def test_seed_changes_output(self, small_config: StarboxConfig) -> None:
        a = StarboxRunner(small_config).run(seed=1)
        b = StarboxRunner(small_config).run(seed=2)
        assert a.metadata["channel_sha256"] != b.metadata["channel_sha256"]

    def test_output_shape_and_range(self, small_config: StarboxConfig) -> None:
        result = StarboxRunner(small_config).run()
        y = result.channels["Y"]
        t = result.channels["T"]

        assert y.shape == (96, 16)
        assert y.dtype == np.float16
        assert np.isfinite(y).all()
        assert float(y.min()) >= 0.0
        assert np.count_nonzero(y) > 0
        # no light where no star landed
        assert np.all(y[t == 0] == 0)
        assert result.stats.count == 2000
        assert result.stats.brightest > 0.0
        assert result.stats.total >= result.stats.brightest

    def test_rgb_layout(self, small_config: StarboxConfig) -> None:
        cfg = small_config.with_overrides(channel_layout="RGB")
        result = StarboxRunner(cfg).run()

        assert set(result.channels) == {"R", "G", "B"}
        assert result.metadata["channel_layout"] == "RGB"
        for arr in result.channels.values():
            assert arr.shape == (96, 16)
            assert arr.dtype == np.float16

    def test_zero_stars(self, small_config: StarboxConfig) -> None:
        cfg = small_config.with_overrides(star_count_thousands=0)
        result = StarboxRunner(cfg).run()

        assert result.stats.count == 0
        assert not np.any(result.channels["Y"])


# ===================================================================
# CHANNEL COMPOSITION
# ===================================================================


class TestChannels:
    """YT and RGB layouts."""

    def test_blackbody_white_point(self) -> None:
        np.testing.assert_allclose(blackbody_rgb(np.array(6600.0)), [1.0, 1.0, 1.0], atol=1e-3)

    def test_blackbody_hue(self) -> None:
        cool, hot = blackbody_rgb(np.array([3000.0, 20000.0]))
        assert cool[0] > cool[2]
        assert hot[2] > hot[0]
        assert np.all((cool >= 0.0) & (cool <= 1.0))

    def test_rgb_dark_where_unlit(self) -> None:
        e = np.zeros((12, 2), dtype=np.float16)
        t = np.zeros((12, 2), dtype=np.float16)
        e[0, 0] = 2.0
        t[0, 0] = 6600.0

        rgb = compose_channels(e, t, "RGB")
        assert float(rgb["R"][0, 0]) == pytest.approx(2.0, rel=1e-2)
        assert not np.any(rgb["G"][1:])

    def test_unknown_layout(self) -> None:
        e = np.zeros((12, 2))
        with pytest.raises(ValueError):
            compose_channels(e, e, "XYZ")


# ===================================================================
# OUTPUT ADAPTER
# ===================================================================


class TestOpenEXR:
    """Cube-map EXR writing and reading."""

    def test_round_trip(self, small_config: StarboxConfig, tmp_path) -> None:
        result = StarboxRunner(small_config).run()
        path = write_cubemap_exr(tmp_path / "sky.exr", result.channels)

        channels = read_cubemap_exr(path)
        assert set(channels) == {"Y", "T"}
        np.testing.assert_array_equal(channels["Y"], result.channels["Y"])
        np.testing.assert_array_equal(channels["T"], result.channels["T"])

    def test_unopenable_destination(self, tmp_path) -> None:
        channels = {"Y": np.zeros((12, 2), dtype=np.float16)}
        with pytest.raises(OutputOpenError) as info:
            write_cubemap_exr(tmp_path / "missing" / "sky.exr", channels)
        assert isinstance(info.value, OSError)
        assert isinstance(info.value.__cause__, OSError)

    def test_cube_environment_header(self, tmp_path) -> None:
        """The file is tagged as a cube map, ZIP compressed, with HALF channels."""
        channels = {
            "Y": np.ones((12, 2), dtype=np.float16),
            "T": np.full((12, 2), 5772.0, dtype=np.float16),
        }
        path = write_cubemap_exr(tmp_path / "sky.exr", channels)

        with OpenEXR.File(str(path), separate_channels=True) as exr_file:
            header = exr_file.header()
            assert header["envmap"] == OpenEXR.ENVMAP_CUBE
            assert header["compression"] == OpenEXR.ZIP_COMPRESSION
            stored = exr_file.channels()
            assert set(stored) == {"Y", "T"}
            for name in ("Y", "T"):
                assert stored[name].pixels.dtype == np.float16
                assert stored[name].pixels.shape == (12, 2)

    def test_bad_channel_shape(self, tmp_path) -> None:
        channels = {"Y": np.zeros((5, 5), dtype=np.float16)}
        with pytest.raises(EncoderError) as info:
            write_cubemap_exr(tmp_path / "sky.exr", channels)
        assert "failed to initialize encoder" in info.value.describe()

    def test_estimate_size(self) -> None:
        assert estimate_size_mib(1024, 2) == 24.0

    def test_metadata_round_trip(self, tmp_path) -> None:
        meta = {"seed": np.int64(3), "viewer_kpc": np.array([1.0, 2.0, 3.0]), "ok": np.bool_(True)}
        path = save_metadata(tmp_path / "meta.json", meta)
        assert load_metadata(path) == {"seed": 3, "viewer_kpc": [1.0, 2.0, 3.0], "ok": True}


class TestErrors:
    """Error taxonomy."""

    def test_describe_chains_causes(self) -> None:
        try:
            try:
                raise OSError("disk full")
            except OSError as exc:
                raise WriteError("failed to output data") from exc
        except StarboxError as err:
            assert err.describe() == "failed to output data: disk full"


# ===================================================================
# CLI
# ===================================================================


class TestCLI:
    """main() exit codes and outputs."""

    def _argv(self, config_path, *extra: str) -> list[str]:
        return ["-r", "8", "-n", "1", "--seed", "3", "--config", str(config_path), *extra]

    def test_success(self, config_path, tmp_path) -> None:
        from main import main

        out = tmp_path / "sky.exr"
        meta = tmp_path / "sky.json"
        code = main([str(out), *self._argv(config_path, "--metadata", str(meta))])

        assert code == 0
        assert out.exists()
        data = json.loads(meta.read_text(encoding="utf-8"))
        assert data["seed"] == 3
        assert data["resolution"] == 8
        assert data["star_count"] == 1000

    def test_preview(self, config_path, tmp_path) -> None:
        from main import main

        out = tmp_path / "sky.exr"
        preview = tmp_path / "sky.png"
        assert main([str(out), *self._argv(config_path, "--preview", str(preview))]) == 0
        assert preview.exists()
        assert (tmp_path / "sky_temperature.png").exists()

        again = tmp_path / "again.png"
        assert main([str(out), "--preview-only", "--preview", str(again)]) == 0
        assert again.exists()

    def test_unwritable_output(self, config_path, tmp_path) -> None:
        from main import main

        out = tmp_path / "no_such_dir" / "sky.exr"
        assert main([str(out), *self._argv(config_path)]) == 1

    def test_invalid_resolution(self, config_path, tmp_path) -> None:
        from main import main

        argv = [str(tmp_path / "sky.exr"), "-r", "1", "--config", str(config_path)]
        assert main(argv) == 1

    def test_missing_config(self, tmp_path) -> None:
        from main import main

        argv = [str(tmp_path / "sky.exr"), "--config", str(tmp_path / "nope.yaml")]
        assert main(argv) == 1

    def test_malformed_argument(self, tmp_path) -> None:
        from main import main

        with pytest.raises(SystemExit) as info:
            main([str(tmp_path / "sky.exr"), "-r", "abc"])
        assert info.value.code == 2

    def test_star_count_accepts_zero(self, tmp_path) -> None:
        from main import parse_args

        args = parse_args([str(tmp_path / "sky.exr"), "-n", "0"])
        assert args.number == 0

    def test_negative_star_count_rejected(self, tmp_path) -> None:
        from main import main

        with pytest.raises(SystemExit) as info:
            main([str(tmp_path / "sky.exr"), "-n", "-1"])
        assert info.value.code == 2
