"""Main module for the cropslice CLI."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .core import (
    ConfigurationError,
    PipelineConfig,
    get_logger,
    set_debug,
)
from .core.factories import PipelineContextFactory
from .handlers import Response, handle_crop_request, handle_delete_request


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with the crop, delete and version commands."""
    parser = argparse.ArgumentParser(
        prog="cropslice",
        description="Split an image into tiles and upload them to S3 as one zip archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Cut photo.png into 256x256 tiles and print the download link
  cropslice crop photo.png --tile-width 256 --tile-height 256 --bucket my-bucket

  # Remove an archive again
  cropslice delete cropped_images_20240101120000.zip --bucket my-bucket

  # Show version
  cropslice version
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    crop_parser = subparsers.add_parser("crop", help="Crop an image into tiles and upload the archive")
    crop_parser.add_argument("image", help="Path of the image to crop")
    crop_parser.add_argument("--tile-width", required=True, help="Tile width in pixels")
    crop_parser.add_argument("--tile-height", required=True, help="Tile height in pixels")
    crop_parser.add_argument("--concurrency", type=int, default=None, help="Simultaneous tile encodes (default: 2)")
    crop_parser.add_argument("--attempts", type=int, default=None, help="Upload attempts (default: 2)")
    crop_parser.add_argument("--quality", type=int, default=None, help="JPEG quality of the tiles (default: 60)")

    delete_parser = subparsers.add_parser("delete", help="Delete a stored archive by name")
    delete_parser.add_argument("file_name", help="Archive name, e.g. cropped_images_20240101120000.zip")

    for sub in (crop_parser, delete_parser):
        sub.add_argument("--bucket", default=None, help="Destination bucket (default: $BUCKET_NAME)")
        sub.add_argument("--region", default=None, help="Bucket region (default: $REGION)")
        sub.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers.add_parser("version", help="Show version information")
    return parser


def load_config(args: argparse.Namespace) -> PipelineConfig:
    overrides: Dict[str, Any] = {
        "bucket": args.bucket,
        "region": args.region,
        "debug": args.debug or None,
        "encode_concurrency": getattr(args, "concurrency", None),
        "max_upload_attempts": getattr(args, "attempts", None),
        "jpeg_quality": getattr(args, "quality", None),
    }
    return PipelineConfig.from_env(**overrides)


def _read_image(path: str) -> Optional[bytes]:
    image_path = Path(path)
    if not image_path.is_file():
        return None
    return image_path.read_bytes()


async def run_command(args: argparse.Namespace, config: PipelineConfig) -> Response:
    """Run one CLI command against a freshly opened S3 client."""
    async with PipelineContextFactory.open(config) as context:
        if args.command == "crop":
            return await handle_crop_request(
                context, _read_image(args.image), args.tile_width, args.tile_height
            )
        return await handle_delete_request(context, args.file_name)


def main() -> None:
    """Entry point for the cropslice command-line interface."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "version":
        print("cropslice")
        print(f"Version {__version__}")
        print("Image tiling to zip archives on S3")
        sys.exit(0)
        return

    if args.command not in ("crop", "delete"):
        parser.print_help()
        sys.exit(1)
        return

    logger = get_logger("cropslice")
    try:
        config = load_config(args)
    except ConfigurationError as exc:
        logger.error(f"Configuration error: {exc}")
        print(json.dumps({"error": str(exc)}))
        sys.exit(2)
        return

    set_debug(config.debug)

    try:
        status, payload = asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        sys.exit(130)
        return

    print(json.dumps(payload, indent=2))
    sys.exit(0 if status == 200 else 1)


if __name__ == "__main__":
    main()
