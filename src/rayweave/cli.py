"""Command-line interface for the rayweave renderer.

Usage:
    rayweave [--debug | --trace] [--arch {cpu,gpu}] [--threads N] render SCENE [OUTPUT] [options]
    rayweave generate gradient [PATH] [DIMENSIONS] [-f]

Render options:
    -d, --dimensions WxH      Output size (default: 800x600)
    -f, --fix-dirs            Create missing output directories
    -F, --features-file FILE  Load render settings from a YAML/JSON file
    --samples N               Samples per pixel
    --max-depth N             Maximum bounces per path
    --no-anti-aliasing        Sample pixel centres only
    --no-gamma                Skip gamma encoding
    --seed N                  Random seed
    --quiet                   Suppress progress output

Settings are resolved as defaults, then the features file, then the
command-line options.

Example:
    rayweave render scenes/two_spheres.yaml out/two_spheres.png -d 400x225 --samples 32 -f
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Sequence

import taichi as ti

from rayweave import __version__
from rayweave.logging_config import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = "./image.png"
DEFAULT_GRADIENT_DIMENSIONS = "256x256"


def parse_dimensions(value: str) -> tuple[int, int]:
    """Parse a ``<W>x<H>`` dimension string.

    Raises:
        argparse.ArgumentTypeError: If either part is not a positive integer.
    """
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(
            f"expected dimensions as <width>x<height>, got '{value}'"
        )

    dims = []
    for label, part in zip(("width", "height"), parts):
        try:
            number = int(part)
        except ValueError:
            raise argparse.ArgumentTypeError(
                f"invalid {label} '{part}' in '{value}': not an integer"
            ) from None
        if number <= 0:
            raise argparse.ArgumentTypeError(
                f"invalid {label} '{part}' in '{value}': must be positive"
            )
        dims.append(number)
    return dims[0], dims[1]


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the rayweave command."""
    parser = argparse.ArgumentParser(
        prog="rayweave",
        description="Render sphere scenes with a small Monte Carlo ray tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable the most verbose output (implies --debug)",
    )
    parser.add_argument(
        "--arch",
        choices=("cpu", "gpu"),
        default=None,
        help="Taichi backend (default: try GPU, fall back to CPU)",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=None,
        help="Number of CPU worker threads (default: all cores)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # render
    render = subparsers.add_parser("render", help="Render a scene file to a PNG image")
    render.add_argument("scene_path", help="Scene file (YAML or JSON)")
    render.add_argument(
        "output_path",
        nargs="?",
        default=DEFAULT_OUTPUT,
        help=f"Output PNG path (default: {DEFAULT_OUTPUT})",
    )
    render.add_argument(
        "-d",
        "--dimensions",
        type=parse_dimensions,
        default=None,
        help="Output size as <width>x<height> (default: 800x600)",
    )
    render.add_argument(
        "-f",
        "--fix-dirs",
        action="store_true",
        help="Create missing output directories",
    )
    render.add_argument(
        "-F",
        "--features-file",
        default=None,
        help="Load render settings from a YAML/JSON features file",
    )
    render.add_argument("--samples", type=int, default=None, help="Samples per pixel")
    render.add_argument("--max-depth", type=int, default=None, help="Maximum bounces per path")
    render.add_argument(
        "--no-anti-aliasing",
        dest="anti_aliasing",
        action="store_const",
        const=False,
        default=None,
        help="Sample pixel centres only",
    )
    render.add_argument(
        "--no-gamma",
        dest="gamma_correction",
        action="store_const",
        const=False,
        default=None,
        help="Skip gamma encoding",
    )
    render.add_argument("--seed", type=int, default=None, help="Random seed")
    render.add_argument("--quiet", action="store_true", help="Suppress progress output")

    # generate
    generate = subparsers.add_parser("generate", help="Generate test images")
    generate_kinds = generate.add_subparsers(dest="kind", required=True)
    gradient = generate_kinds.add_parser("gradient", help="Write the test gradient image")
    gradient.add_argument(
        "path",
        nargs="?",
        default=DEFAULT_OUTPUT,
        help=f"Output PNG path (default: {DEFAULT_OUTPUT})",
    )
    gradient.add_argument(
        "dimensions",
        nargs="?",
        type=parse_dimensions,
        default=parse_dimensions(DEFAULT_GRADIENT_DIMENSIONS),
        help=f"Image size as <width>x<height> (default: {DEFAULT_GRADIENT_DIMENSIONS})",
    )
    gradient.add_argument(
        "-f",
        "--fix-dirs",
        action="store_true",
        help="Create missing output directories",
    )

    return parser


def init_taichi(arch: str | None = None, threads: int | None = None) -> None:
    """Initialize Taichi on the requested backend.

    Without an explicit backend the GPU is tried first and the CPU is used
    when no GPU backend is available.
    """
    kwargs = {}
    if threads is not None:
        kwargs["cpu_max_num_threads"] = threads

    if arch == "cpu":
        ti.init(arch=ti.cpu, **kwargs)
        logger.debug("Using CPU backend")
        return

    try:
        ti.init(arch=ti.gpu, **kwargs)
        logger.debug("Using GPU backend")
    except Exception:
        if arch == "gpu":
            raise
        ti.init(arch=ti.cpu, **kwargs)
        logger.debug("Using CPU backend")


def _resolve_settings(args: argparse.Namespace):
    from rayweave.core.settings import RenderSettings

    settings = RenderSettings()
    if args.features_file is not None:
        settings = RenderSettings.from_file(args.features_file)

    width, height = args.dimensions if args.dimensions is not None else (None, None)
    return settings.merged(
        width=width,
        height=height,
        samples_per_pixel=args.samples,
        max_depth=args.max_depth,
        anti_aliasing=args.anti_aliasing,
        gamma_correction=args.gamma_correction,
        seed=args.seed,
    ).validate()


def run_render(args: argparse.Namespace) -> None:
    """Load a scene, render it and write the PNG."""
    # Lazy imports to allow Taichi initialization first
    from rayweave.core.progressive import render_frame
    from rayweave.preview.export import save_png
    from rayweave.scene.description import build_scene, load_scene_file

    settings = _resolve_settings(args)
    logger.debug("Render settings: %s", settings.to_dict())

    description = load_scene_file(args.scene_path)
    scene = build_scene(description, aspect_ratio=settings.aspect_ratio)

    start_time = time.time()

    def progress_callback(rows_done: int, height: int) -> None:
        elapsed = time.time() - start_time
        progress_pct = (rows_done / height) * 100 if height > 0 else 0
        print(
            f"\r  Progress: {rows_done}/{height} rows ({progress_pct:.1f}%) - {elapsed:.1f}s",
            end="",
            file=sys.stderr,
            flush=True,
        )

    frame = render_frame(scene, settings, callback=None if args.quiet else progress_callback)
    if not args.quiet:
        print(file=sys.stderr)  # Newline after progress

    path = save_png(frame, args.output_path, fix_dirs=args.fix_dirs)
    if not args.quiet:
        print(f"Saved to: {path.absolute()}")


def run_generate(args: argparse.Namespace) -> None:
    """Write a generated test image."""
    from rayweave.preview.export import generate_gradient, save_png

    width, height = args.dimensions
    save_png(generate_gradient(width, height), args.path, fix_dirs=args.fix_dirs)


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Process exit status: 0 on success, 1 on failure.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(debug=args.debug, trace=args.trace)
    logger.debug("rayweave v%s", __version__)

    try:
        if args.command == "render":
            init_taichi(args.arch, args.threads)
            run_render(args)
        elif args.command == "generate":
            run_generate(args)
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
