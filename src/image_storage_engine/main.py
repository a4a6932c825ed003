"""Main module for the image storage engine CLI."""

import sys
import asyncio
import argparse
import os
from typing import Any, Dict, List, Optional

from . import __version__
from .core import StorageEngineError, UploadedFile, setup_logger
from .core.factories import S3ClientFactory, StorageEngineFactory
from .core.models import FIT_TYPES


def parse_size(value: str) -> Dict[str, Any]:
    """
    Parse ``[name:][WIDTH]x[HEIGHT]`` into a size entry.

    ``thumb:100x100`` -> name, width and height; ``wide:800x`` -> width only;
    ``:`` -> the unnamed original.
    """
    name, _, dimensions = value.rpartition(":") if ":" in value else ("", "", value)
    size: Dict[str, Any] = {}
    if name:
        size["name"] = name

    if dimensions:
        width, sep, height = dimensions.partition("x")
        if not sep:
            raise argparse.ArgumentTypeError(f"Invalid size '{value}', expected [name:]WxH")
        try:
            if width:
                size["width"] = int(width)
            if height:
                size["height"] = int(height)
        except ValueError:
            raise argparse.ArgumentTypeError(
                f"Invalid size '{value}', dimensions must be integers"
            ) from None
    return size


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="image-storage-engine",
        description="Resize uploaded images and store every variant in S3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Store the original only
  image-storage-engine upload photo.jpg --bucket my-bucket

  # Original, a thumbnail and WebP copies of both behind a CDN
  image-storage-engine upload photo.jpg --bucket my-bucket --s3-path uploads \\
                       --size : --size thumb:100x100 --webp --cdn https://cdn.example.com

  # Show version
  image-storage-engine version
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    upload_parser: argparse.ArgumentParser = subparsers.add_parser(
        "upload", help="Transform a local image and upload every variant"
    )
    upload_parser.add_argument("file", help="Image file to upload")
    upload_parser.add_argument(
        "--bucket", default=None, help="Destination bucket (default: $S3_BUCKET)"
    )
    upload_parser.add_argument(
        "--s3-path", default=None, help="Key prefix (default: $S3_PATH)"
    )
    upload_parser.add_argument(
        "--cdn", default=None, help="CDN host used for reported URLs (default: $CDN_HOST)"
    )
    upload_parser.add_argument("--acl", default="public-read", help="Canned ACL")
    upload_parser.add_argument(
        "--size",
        dest="sizes",
        action="append",
        type=parse_size,
        default=None,
        help="Variant as [name:]WxH; repeatable (default: original only)",
    )
    upload_parser.add_argument(
        "--fit", default="outside", choices=FIT_TYPES, help="Global resize fit"
    )
    upload_parser.add_argument(
        "--webp", action="store_true", help="Also store a WebP copy of every variant"
    )
    upload_parser.add_argument(
        "--grayscale", action="store_true", help="Convert variants to grayscale"
    )
    upload_parser.add_argument(
        "--no-rotate", action="store_true", help="Do not apply EXIF orientation"
    )
    upload_parser.add_argument(
        "--endpoint-url", default=None, help="S3 compatible endpoint URL"
    )
    upload_parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )

    subparsers.add_parser("version", help="Show version information")
    return parser


def _options_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "bucket": args.bucket,
        "s3_path": args.s3_path,
        "cdn": args.cdn,
        "acl": args.acl,
        "fit": args.fit,
        "webp": args.webp,
        "grayscale": args.grayscale,
        "rotate": not args.no_rotate,
    }
    if args.sizes is not None:
        options["sizes"] = args.sizes
    return options


async def run_upload(args: argparse.Namespace) -> str:
    """Upload one file; on failure remove whatever was already stored."""
    client_kwargs = {"endpoint_url": args.endpoint_url} if args.endpoint_url else {}

    async with S3ClientFactory.create_s3_client(**client_kwargs) as s3_client:
        engine = StorageEngineFactory.create_engine(
            s3_client, config_overrides=_options_from_args(args)
        )
        upload = UploadedFile(stream=None, originalname=os.path.basename(args.file))
        with open(args.file, "rb") as stream:
            upload.stream = stream
            try:
                result = await engine.handle_file(None, upload)
            except BaseException:
                await engine.remove_file(None, upload)
                raise
        return result.model_dump_json(indent=2)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``image-storage-engine`` command."""
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.command == "upload":
        if args.debug:
            os.environ["LOG_LEVEL"] = "DEBUG"
        logger = setup_logger()
        try:
            print(asyncio.run(run_upload(args)))
        except (StorageEngineError, OSError) as exc:
            logger.error(f"Upload failed: {exc}")
            sys.exit(1)

    elif args.command == "version":
        print("Image Storage Engine CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
