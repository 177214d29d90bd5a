"""rawview CLI renderer.

Develops RAW or raster files through the adjustment pipeline without a UI.
"""

import os
import sys
import argparse
import dataclasses
import json
import logging
import time
from typing import Any, Dict, List, Optional

import imageio.v3 as iio
import numpy as np

from rawview.domain.models import (
    AdjustmentParams,
    ExportOptions,
    ToneCurve,
    TransformParams,
)
from rawview.domain.types import RGBA8Buffer
from rawview.features.auto.logic import compute_auto_adjustments
from rawview.infrastructure.loaders.factory import loader_factory
from rawview.kernel.system.logging import get_logger, setup_logging
from rawview.services.export.service import ExportService
from rawview.services.rendering.factory import create_renderer

logger = get_logger(__name__)

FORMAT_EXTENSIONS = {
    "jpeg": "jpg",
    "png": "png",
    "tiff": "tiff",
}

FORMAT_CHOICES = tuple(FORMAT_EXTENSIONS.keys())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rawview",
        description="rawview -- develop RAW photos from the command line",
        epilog="Example: rawview --auto --width 2048 --output ./export IMG_0001.CR2",
    )

    parser.add_argument(
        "inputs",
        nargs="+",
        metavar="FILE",
        help="Input image files",
    )

    parser.add_argument(
        "--output",
        default="./export",
        metavar="DIR",
        help="Output directory (default: ./export)",
    )

    parser.add_argument(
        "--format",
        choices=FORMAT_CHOICES,
        default="jpeg",
        dest="output_format",
        help="Output file format (default: jpeg)",
    )

    parser.add_argument(
        "--quality",
        type=int,
        default=92,
        metavar="INT",
        help="JPEG quality 1..100 (default: 92)",
    )

    parser.add_argument(
        "--width",
        type=int,
        default=None,
        metavar="PX",
        help="Export width, height follows the aspect ratio (default: full size)",
    )

    parser.add_argument(
        "--upscale",
        action="store_true",
        default=False,
        help="Allow exports larger than the source",
    )

    parser.add_argument(
        "--auto",
        action="store_true",
        default=False,
        help="Derive adjustments from image content before rendering",
    )

    parser.add_argument(
        "--settings",
        default=None,
        metavar="JSON_FILE",
        help="JSON file with 'adjustments', 'tone_curve' and 'transform' sections",
    )

    parser.add_argument(
        "--rotation",
        type=float,
        default=None,
        metavar="DEG",
        help="Rotation in degrees, overrides the settings file",
    )

    parser.add_argument(
        "--exposure",
        type=float,
        default=None,
        metavar="EV",
        help="Exposure in EV, applied after --auto",
    )

    parser.add_argument(
        "--scalar",
        action="store_true",
        default=False,
        help="Use the single-threaded executor",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Debug logging, including per-stage timings",
    )

    return parser


def load_settings(path: Optional[str]) -> Dict[str, Any]:
    """Reads a settings file. Returns {} when no path is given."""
    if not path:
        return {}
    with open(os.path.abspath(path), "r") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise TypeError("Settings file must contain a JSON object")
    return data


def build_state(args: argparse.Namespace, settings: Dict[str, Any]):
    """Settings file first, CLI flags win."""
    params = AdjustmentParams.from_dict(settings.get("adjustments", {}))
    curve = ToneCurve.from_dict(settings.get("tone_curve", {}))
    transform = TransformParams.from_dict(settings.get("transform", {}))
    if args.rotation is not None:
        transform = dataclasses.replace(transform, rotation_deg=args.rotation)
    return params, curve, transform


def encode_output(frame: RGBA8Buffer, out_path: str, fmt: str, quality: int) -> None:
    rgb = np.ascontiguousarray(frame[..., :3])
    if fmt == "jpeg":
        iio.imwrite(out_path, rgb, extension=".jpg", quality=quality)
    elif fmt == "tiff":
        iio.imwrite(out_path, rgb, extension=".tif")
    else:
        iio.imwrite(out_path, rgb, extension=".png")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns 0 on success, 1 on failure."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = load_settings(args.settings)
        base_params, curve, transform = build_state(args, settings)
    except (json.JSONDecodeError, FileNotFoundError, KeyError, TypeError, ValueError) as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    os.makedirs(args.output, exist_ok=True)
    export_service = ExportService(
        renderer_factory=lambda: create_renderer(prefer_parallel=not args.scalar)
    )

    total = len(args.inputs)
    failed = 0
    t_start = time.monotonic()

    for i, file_path in enumerate(args.inputs, 1):
        name = os.path.splitext(os.path.basename(file_path))[0]
        print(f"  [{i}/{total}] {name} ...", file=sys.stderr, end="", flush=True)
        t_file = time.monotonic()

        try:
            image = loader_factory.load(file_path)

            params = base_params
            if args.auto:
                params = compute_auto_adjustments(image, params, transform)
            if args.exposure is not None:
                params = dataclasses.replace(params, exposure=args.exposure)

            ext = FORMAT_EXTENSIONS[args.output_format]
            # Without --width an oversized target snaps back to the full size
            options = ExportOptions(
                target_width=args.width or 10**9,
                target_height=image.height,
                upscale=bool(args.width) and args.upscale,
                format=args.output_format,
                quality=args.quality,
                filename=name,
            )
            frame = export_service.render_export(
                image, params, curve, transform, options
            )
            out_path = os.path.join(args.output, f"{name}.{ext}")
            encode_output(frame, out_path, args.output_format, args.quality)

            elapsed = time.monotonic() - t_file
            print(f" OK ({elapsed:.1f}s)", file=sys.stderr)

        except Exception as e:
            logger.error(f"Failed to render {file_path}: {e}")
            print(f" ERROR: {e}", file=sys.stderr)
            failed += 1

    total_time = time.monotonic() - t_start
    print(
        f"Done: {total - failed}/{total} succeeded in {total_time:.1f}s",
        file=sys.stderr,
    )
    return 1 if failed > 0 else 0


def cli_entry() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
