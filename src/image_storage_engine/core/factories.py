"""Factory classes for creating configured engine instances."""

from typing import TYPE_CHECKING, Any, Dict, Optional

import aioboto3

from .models import StorageOptions, load_options
from .protocols import LoggerProtocol, S3ClientProtocol

if TYPE_CHECKING:
    from ..pipeline.engine import ImageStorageEngine
    from ..pipeline.registry import InFlightRegistry


class S3ClientFactory:
    """Factory for creating async S3 clients."""

    @staticmethod
    def create_s3_client(**kwargs: Any) -> Any:
        """
        Create an aioboto3 S3 client context manager.

        Use as ``async with S3ClientFactory.create_s3_client() as s3: ...``.
        """
        session = aioboto3.Session()
        return session.client("s3", **kwargs)  # type: ignore[reportUnknownMemberType]


class StorageEngineFactory:
    """Factory for creating a fully wired storage engine."""

    @staticmethod
    def create_engine(
        s3_client: S3ClientProtocol,
        logger: Optional[LoggerProtocol] = None,
        config_overrides: Optional[Dict[str, Any]] = None,
        registry: Optional["InFlightRegistry"] = None,
    ) -> "ImageStorageEngine":
        """
        Create an engine with merged options.

        Engines built with the same ``registry`` can remove each other's
        uploads; without one every engine gets its own.
        """
        from ..pipeline.engine import ImageStorageEngine

        options: StorageOptions = load_options(**(config_overrides or {}))
        kwargs: Dict[str, Any] = {"registry": registry} if registry is not None else {}
        return ImageStorageEngine(s3_client, options, logger=logger, **kwargs)
