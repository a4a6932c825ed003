"""Image processing utilities for the image storage engine."""

import io
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps

from .exceptions import TransformError

# Width or height left for the other dimension (or the source) to decide.
UNCONSTRAINED = -1

POSITIONS = {
    "centre": (0.5, 0.5),
    "center": (0.5, 0.5),
    "top": (0.5, 0.0),
    "north": (0.5, 0.0),
    "right top": (1.0, 0.0),
    "northeast": (1.0, 0.0),
    "right": (1.0, 0.5),
    "east": (1.0, 0.5),
    "right bottom": (1.0, 1.0),
    "southeast": (1.0, 1.0),
    "bottom": (0.5, 1.0),
    "south": (0.5, 1.0),
    "left bottom": (0.0, 1.0),
    "southwest": (0.0, 1.0),
    "left": (0.0, 0.5),
    "west": (0.0, 0.5),
    "left top": (0.0, 0.0),
    "northwest": (0.0, 0.0),
}

_FIT_PATTERN = re.compile(r"^(cover|contain|fill|inside|outside)$")


def validate_fit_type(fit: object) -> bool:
    """Return True when ``fit`` is one of cover, contain, fill, inside, outside."""
    return isinstance(fit, str) and _FIT_PATTERN.match(fit) is not None


@dataclass(frozen=True)
class TransformSettings:
    """Resolved settings for rendering one variant."""

    width: int = UNCONSTRAINED
    height: int = UNCONSTRAINED
    fit: str = "cover"
    position: str = "centre"
    rotate: bool = False
    grayscale: bool = False
    with_metadata: bool = False
    webp: bool = False


def centering_for(position: str) -> Tuple[float, float]:
    """Map a gravity name to Pillow centering coordinates."""
    try:
        return POSITIONS[position.lower()]
    except (AttributeError, KeyError):
        raise TransformError(f"Invalid position: {position}") from None


def resize_image(
    img: "Image.Image",
    width: int = UNCONSTRAINED,
    height: int = UNCONSTRAINED,
    fit: str = "cover",
    position: str = "centre",
) -> "Image.Image":
    """
    Resize an image into a ``width`` x ``height`` box.

    With one dimension unconstrained the aspect ratio is kept and ``fit`` is
    irrelevant; with both unconstrained the image is returned as is.

    Args:
        img: PIL Image to resize
        width: Target width or UNCONSTRAINED
        height: Target height or UNCONSTRAINED
        fit: cover (crop), contain (letterbox), fill (stretch),
            inside (fit within) or outside (cover without cropping)
        position: Gravity used by cover and contain

    Returns:
        Resized PIL Image
    """
    if width == UNCONSTRAINED and height == UNCONSTRAINED:
        return img

    src_width, src_height = img.size
    if width == UNCONSTRAINED:
        width = max(1, round(src_width * height / src_height))
        return img.resize((width, height), Image.Resampling.LANCZOS)
    if height == UNCONSTRAINED:
        height = max(1, round(src_height * width / src_width))
        return img.resize((width, height), Image.Resampling.LANCZOS)

    if fit == "fill":
        return img.resize((width, height), Image.Resampling.LANCZOS)
    if fit == "cover":
        return ImageOps.fit(
            img, (width, height), Image.Resampling.LANCZOS, centering=centering_for(position)
        )
    if fit == "contain":
        return ImageOps.pad(
            img, (width, height), Image.Resampling.LANCZOS, centering=centering_for(position)
        )

    if fit == "inside":
        ratio = min(width / src_width, height / src_height)
    elif fit == "outside":
        ratio = max(width / src_width, height / src_height)
    else:
        raise TransformError(f"Invalid fit: {fit}")
    size = (max(1, round(src_width * ratio)), max(1, round(src_height * ratio)))
    return img.resize(size, Image.Resampling.LANCZOS)


def output_format(source_format: Optional[str], webp: bool) -> str:
    """Pick the encoder for a variant; GIF and unknown inputs are written as PNG."""
    if webp:
        return "WEBP"
    fmt = (source_format or "PNG").upper()
    if fmt in ("GIF", "SVG"):
        return "PNG"
    return fmt


def _prepare_for_format(img: "Image.Image", fmt: str) -> "Image.Image":
    if fmt == "JPEG":
        if img.mode == "LA":
            return img.convert("L")
        if img.mode not in ("RGB", "L", "CMYK"):
            return img.convert("RGB")
    elif img.mode == "P":
        return img.convert("RGBA")
    return img


def apply_transformation(img: "Image.Image", settings: TransformSettings) -> "Image.Image":
    """Apply rotation, grayscale and resize in that order."""
    if settings.rotate:
        img = ImageOps.exif_transpose(img)
    if img.mode == "P":
        img = img.convert("RGBA")
    if settings.grayscale:
        img = img.convert("LA" if "A" in img.getbands() else "L")
    return resize_image(
        img, settings.width, settings.height, settings.fit, settings.position
    )


def render_variant(image_bytes: bytes, settings: TransformSettings) -> bytes:
    """
    Decode, transform and re-encode one variant.

    Raises:
        TransformError: If the bytes are not a readable image or encoding fails
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except Exception as exc:  # noqa: BLE001
        raise TransformError(f"Failed to read image: {exc}") from exc

    fmt = output_format(image.format, settings.webp)
    exif = image.getexif() if settings.with_metadata else None

    transformed = _prepare_for_format(apply_transformation(image, settings), fmt)

    save_kwargs = {}
    if fmt in ("JPEG", "WEBP"):
        save_kwargs["quality"] = 95
    if exif is not None and len(exif):
        if settings.rotate:
            # exif_transpose already applied the orientation
            exif[0x0112] = 1
        save_kwargs["exif"] = exif.tobytes()

    output_stream = io.BytesIO()
    try:
        transformed.save(output_stream, format=fmt, **save_kwargs)
    except Exception as exc:  # noqa: BLE001
        raise TransformError(f"Failed to encode {fmt} image: {exc}") from exc
    return output_stream.getvalue()
