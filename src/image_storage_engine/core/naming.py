"""Random filename generation for stored variants."""

import asyncio
import hashlib
import os
from typing import Callable, Optional

from .exceptions import HashError, NameGenerationError, RandomnessError

# The transform stage renders these inputs as PNG.
CONVERT_TO_PNG = ("gif", "svg")
RANDOM_BYTES = 16


class NameGenerator:
    """Produces 32 hex character names from 128 random bits."""

    def __init__(self, entropy: Callable[[int], bytes] = os.urandom):
        self._entropy = entropy

    def _digest(self, raw: bytes) -> str:
        try:
            return hashlib.md5(raw).hexdigest()
        except Exception as exc:  # noqa: BLE001
            raise HashError(f"Failed to hash random bytes: {exc}") from exc

    async def generate(self, extension: Optional[str] = None) -> str:
        """
        Generate a collision resistant filename.

        Args:
            extension: Extension of the uploaded file, if any

        Returns:
            ``<32 hex chars>`` plus ``.extension`` when one is given;
            gif and svg extensions become png.

        Raises:
            RandomnessError: If the entropy source fails
            HashError: If the digest cannot be computed
        """
        try:
            raw = await asyncio.to_thread(self._entropy, RANDOM_BYTES)
        except Exception as exc:  # noqa: BLE001
            raise RandomnessError(f"Failed to read random bytes: {exc}") from exc

        filename = self._digest(raw)
        if not filename:
            raise NameGenerationError("failed to create filename")

        if extension and extension.lower() in CONVERT_TO_PNG:
            extension = "png"
        return f"{filename}.{extension}" if extension else filename
