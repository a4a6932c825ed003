"""Protocol definitions for dependency injection and testability."""

from typing import Any, AsyncIterator, Dict, Protocol

from .image_utils import TransformSettings
from .models import StorageOptions, VariantSpec


class S3ClientProtocol(Protocol):
    """Protocol for the async S3 client operations the engine uses."""

    async def put_object(self, **kwargs: Any) -> Dict[str, Any]:
        """Store a whole object."""
        ...

    async def create_multipart_upload(self, **kwargs: Any) -> Dict[str, Any]:
        """Start a multipart upload."""
        ...

    async def upload_part(self, **kwargs: Any) -> Dict[str, Any]:
        """Upload one part of a multipart upload."""
        ...

    async def complete_multipart_upload(self, **kwargs: Any) -> Dict[str, Any]:
        """Assemble uploaded parts into the final object."""
        ...

    async def abort_multipart_upload(self, **kwargs: Any) -> Dict[str, Any]:
        """Discard a multipart upload."""
        ...

    async def delete_object(self, **kwargs: Any) -> Dict[str, Any]:
        """Delete an object."""
        ...


REQUIRED_CLIENT_METHODS = (
    "put_object",
    "create_multipart_upload",
    "upload_part",
    "complete_multipart_upload",
    "abort_multipart_upload",
    "delete_object",
)


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...


class TransformStreamProtocol(Protocol):
    """A stage that consumes source chunks and yields rendered chunks."""

    settings: TransformSettings

    def transform(self, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        """Transform a stream of bytes."""
        ...


class TransformFactoryProtocol(Protocol):
    """Protocol for building per-variant transform stages."""

    def create_stream(
        self, options: StorageOptions, variant: VariantSpec, webp: bool = False
    ) -> TransformStreamProtocol:
        """Create the transform stage for one variant."""
        ...
