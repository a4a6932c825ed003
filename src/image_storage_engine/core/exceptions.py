"""Custom exceptions for the image storage engine."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator


class StorageEngineError(Exception):
    """Base exception for all image storage engine errors."""


class ConfigurationError(StorageEngineError):
    """Error raised for invalid engine options."""


class InvalidArgumentError(StorageEngineError, ValueError):
    """Error raised when a helper is called with an unusable argument."""


class NameGenerationError(StorageEngineError):
    """Error raised when a random filename cannot be produced."""


class RandomnessError(NameGenerationError):
    """The entropy source failed."""


class HashError(NameGenerationError):
    """The digest of the random bytes could not be computed."""


class TransformError(StorageEngineError):
    """Error raised for bad resize arguments or an unreadable image."""


class StoreError(StorageEngineError):
    """Error raised for object store upload and delete failures."""


@contextmanager
def transform_error_handler(label: str) -> Iterator[Any]:
    """Re-raise anything escaping an image operation as ``TransformError``."""
    try:
        yield
    except StorageEngineError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise TransformError(f"Failed to transform variant '{label}': {exc}") from exc
