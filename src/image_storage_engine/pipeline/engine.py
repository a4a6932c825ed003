"""Storage engine entry points for upload middleware."""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Union

from ..core.exceptions import ConfigurationError
from ..core.models import StorageOptions, UploadedFile, UploadResult, load_options
from ..core.protocols import LoggerProtocol, S3ClientProtocol
from .orchestrator import UploadOrchestrator
from .registry import InFlightRegistry


def _as_uploaded_file(file: Union[UploadedFile, Mapping[str, Any]]) -> UploadedFile:
    if isinstance(file, UploadedFile):
        return file
    if isinstance(file, Mapping):
        return UploadedFile(
            stream=file.get("stream"),
            originalname=file.get("originalname", ""),
            mimetype=file.get("mimetype"),
        )
    raise TypeError(f"Unsupported file descriptor: {type(file).__name__}")


class ImageStorageEngine:
    """
    Transforms uploaded images and stores every variant in S3.

    The host middleware calls ``handle_file`` once per uploaded file and
    ``remove_file`` when it needs to undo an upload (for example because
    persisting the request failed elsewhere). ``request`` is accepted for
    the host's calling convention and not inspected.
    """

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        options: Optional[Union[StorageOptions, Dict[str, Any]]] = None,
        logger: Optional[LoggerProtocol] = None,
        **orchestrator_kwargs: Any,
    ):
        if s3_client is None:
            raise ConfigurationError("An async S3 client is a required parameter")

        if isinstance(options, StorageOptions):
            # pre-built options still get the env fallbacks and bucket check
            options = options.model_dump(by_alias=True)
        resolved = load_options(**(options or {}))

        self.s3_client = s3_client
        self.options = resolved
        self._orchestrator = UploadOrchestrator(
            s3_client, resolved, logger=logger, **orchestrator_kwargs
        )

    @property
    def registry(self) -> InFlightRegistry:
        return self._orchestrator.registry

    async def handle_file(
        self, request: Any, file: Union[UploadedFile, Mapping[str, Any]]
    ) -> UploadResult:
        """Store every configured variant of ``file``."""
        return await self._orchestrator.handle(_as_uploaded_file(file))

    async def remove_file(
        self, request: Any, file: Union[UploadedFile, Mapping[str, Any]]
    ) -> Union[bool, List[Dict[str, Any]]]:
        """Delete whatever is still registered for ``file``."""
        return await self._orchestrator.remove(_as_uploaded_file(file).originalname)

    def handle_file_sync(
        self, request: Any, file: Union[UploadedFile, Mapping[str, Any]]
    ) -> UploadResult:
        """
        Run ``handle_file`` to completion for synchronous hosts.

        The S3 client must be usable from a fresh event loop.
        """
        return asyncio.run(self.handle_file(request, file))

    def remove_file_sync(
        self, request: Any, file: Union[UploadedFile, Mapping[str, Any]]
    ) -> Union[bool, List[Dict[str, Any]]]:
        """Run ``remove_file`` to completion for synchronous hosts."""
        return asyncio.run(self.remove_file(request, file))


def create_storage_engine(
    s3_client: S3ClientProtocol, logger: Optional[LoggerProtocol] = None, **options: Any
) -> ImageStorageEngine:
    """Build an engine from keyword options, e.g. ``create_storage_engine(s3, webP=True)``."""
    return ImageStorageEngine(s3_client, options, logger=logger)
