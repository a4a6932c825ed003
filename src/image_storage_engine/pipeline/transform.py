"""Per-variant image transform stages."""

import asyncio
from numbers import Integral
from typing import Any, AsyncIterator, Optional

from ..core.exceptions import TransformError, transform_error_handler
from ..core.image_utils import (
    UNCONSTRAINED,
    TransformSettings,
    centering_for,
    render_variant,
    validate_fit_type,
)
from ..core.logging_config import get_logger
from ..core.models import StorageOptions, VariantSpec

OUTPUT_CHUNK_SIZE = 64 * 1024


def _dimension(value: Any, label: str) -> int:
    if value is None:
        return UNCONSTRAINED
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TransformError(f"Expected positive integer for {label} but received {value!r}")
    if value <= 0:
        raise TransformError(f"Expected positive integer for {label} but received {value!r}")
    return int(value)


class TransformStream:
    """
    Collects the source bytes, renders them with Pillow and yields the result.

    Pillow decodes whole images, so the stage buffers its input; rendering
    runs in a worker thread to keep the event loop free for other pipelines.
    """

    def __init__(self, settings: TransformSettings, label: str = "original"):
        self.settings = settings
        self.label = label
        self._logger = get_logger("transform")

    async def transform(self, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        buffer = bytearray()
        async for chunk in chunks:
            buffer.extend(chunk)

        self._logger.debug(
            f"[{self.label}] Rendering {len(buffer)} bytes "
            f"({self.settings.width}x{self.settings.height}, fit={self.settings.fit}, "
            f"webp={self.settings.webp})"
        )
        with transform_error_handler(self.label):
            rendered = await asyncio.to_thread(render_variant, bytes(buffer), self.settings)

        for offset in range(0, len(rendered), OUTPUT_CHUNK_SIZE):
            yield rendered[offset : offset + OUTPUT_CHUNK_SIZE]


class TransformFactory:
    """Builds the transform stage for one variant."""

    def create_stream(
        self,
        options: StorageOptions,
        variant: Optional[VariantSpec] = None,
        webp: bool = False,
    ) -> TransformStream:
        """
        Resolve options and a variant into a ``TransformStream``.

        The variant's own fit wins over the global fit. ``webp`` forces WebP
        output and is set only for web alternates.

        Raises:
            TransformError: For non-integer or non-positive dimensions, an
                unknown fit or an unknown position
        """
        variant = variant or VariantSpec()

        fit = variant.resize_options.fit or options.fit
        if not validate_fit_type(fit):
            raise TransformError(f"Invalid fit: {fit}")
        position = variant.resize_options.position
        centering_for(position)

        settings = TransformSettings(
            width=_dimension(variant.width, "width"),
            height=_dimension(variant.height, "height"),
            fit=fit,
            position=position,
            rotate=options.rotate,
            grayscale=options.grayscale,
            with_metadata=options.with_metadata,
            webp=webp,
        )
        return TransformStream(settings, label=variant.variant_label)
