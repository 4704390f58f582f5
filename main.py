"""Starbox — CLI entry point.

Generates a procedural starfield cube map (OpenEXR, half float).

Usage
-----
    python main.py sky.exr
    python main.py sky.exr -r 2048 -n 1000 --seed 42
    python main.py sky.exr --layout RGB --preview sky.png
    python main.py sky.exr --config config/hires_config.yaml
    python main.py sky.exr --preview-only --preview sky.png   # re-render preview
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from simulation.errors import ArgumentError, StarboxError

_DEFAULT_CONFIG = Path(__file__).parent / "config" / "default_config.yaml"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging."""
    fmt = "%(name)s [%(levelname)s] %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        stream=sys.stdout,
    )


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {text!r}")
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="starbox",
        description="Starbox — procedural starfield cube map generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python main.py sky.exr\n"
            "  python main.py sky.exr -r 2048 -n 1000 --seed 42\n"
            "  python main.py sky.exr --layout RGB --preview sky.png\n"
        ),
    )
    parser.add_argument(
        "file",
        metavar="FILE",
        type=str,
        help="File to write (OpenEXR cube map)",
    )
    parser.add_argument(
        "-r", "--resolution",
        type=_non_negative_int,
        default=None,
        help="Cube map edge length in pixels (default: from config, typically 1024)",
    )
    parser.add_argument(
        "-n", "--number",
        type=_non_negative_int,
        default=None,
        help="Number of stars in thousands (default: from config, typically 500)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(_DEFAULT_CONFIG),
        help="Path to generator config YAML (default: config/default_config.yaml)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for a reproducible cube map (default: from config / fresh entropy)",
    )
    parser.add_argument(
        "--layout",
        type=str.upper,
        default=None,
        choices=["YT", "RGB"],
        help="Channel layout: YT (irradiance + temperature) or RGB (default: from config)",
    )
    parser.add_argument(
        "--preview",
        type=str,
        default=None,
        help="Also render a PNG preview of the unwrapped cube to this path",
    )
    parser.add_argument(
        "--preview-only",
        action="store_true",
        default=False,
        help="Skip generation; render --preview from an existing FILE",
    )
    parser.add_argument(
        "--metadata",
        type=str,
        default=None,
        help="Write run metadata JSON to this path",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )

    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    """Run generation for parsed arguments; raises StarboxError on failure."""
    logger = logging.getLogger("starbox")
    logger.info("=" * 60)
    logger.info("  Starbox — Starfield Cube Map Generator")
    logger.info("=" * 60)

    # --preview-only mode: skip generation, just re-render from the saved cube map
    if args.preview_only:
        if args.preview is None:
            raise ArgumentError("--preview-only requires --preview PATH")
        from simulation.io_manager import read_cubemap_exr
        from visualization.plotter import generate_preview_plots

        logger.info("Preview-only mode: loading %s", args.file)
        try:
            channels = read_cubemap_exr(args.file)
        except (OSError, RuntimeError) as exc:
            raise ArgumentError(f"cannot read cube map {args.file}") from exc
        generate_preview_plots(channels, args.preview)
        return 0

    from starfield.constants import load_config, log_assumptions, log_platform_info, platform_info
    from simulation.io_manager import estimate_size_mib, save_metadata, write_cubemap_exr
    from simulation.runner import StarboxRunner

    # Load configuration
    logger.info("Loading config: %s", args.config)
    try:
        config = load_config(args.config).with_overrides(
            resolution=args.resolution,
            star_count_thousands=args.number,
            channel_layout=args.layout,
            seed=args.seed,
        )
    except (FileNotFoundError, ValueError) as exc:
        raise ArgumentError("invalid configuration") from exc

    log_platform_info()
    log_assumptions(config)

    logger.info(
        "uncompressed size: %.1f MiB",
        estimate_size_mib(config.cubemap.resolution, config.cubemap.num_channels),
    )

    runner = StarboxRunner(config)
    result = runner.run()

    write_cubemap_exr(args.file, result.channels)

    saved = [Path(args.file)]
    if args.preview:
        from visualization.plotter import generate_preview_plots

        saved.extend(generate_preview_plots(result.channels, args.preview))

    if args.metadata:
        metadata = dict(result.metadata, output=args.file, platform=platform_info())
        saved.append(save_metadata(args.metadata, metadata))

    # Summary
    logger.info("=" * 60)
    logger.info("  GENERATION COMPLETE")
    logger.info("=" * 60)
    logger.info("  Stars: %d (seed %d)", result.stats.count, result.metadata["seed"])
    logger.info("  Brightest star irradiance: %.6g", result.stats.brightest)
    logger.info("  Total irradiance:          %.6g", result.stats.total)
    logger.info("  Output files (%d):", len(saved))
    for p in saved:
        logger.info("    → %s", p)
    logger.info("=" * 60)

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main generator entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        return run(args)
    except StarboxError as exc:
        logging.getLogger("starbox").error("Error: %s", exc.describe())
        return 1


if __name__ == "__main__":
    sys.exit(main())
