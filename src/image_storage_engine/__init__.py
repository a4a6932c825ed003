"""Transform uploaded images into sized variants and store them in S3."""

from .core import (
    ConfigurationError,
    StorageEngineError,
    StoreError,
    StorageOptions,
    TransformError,
    UploadedFile,
    UploadResult,
)
from .pipeline import ImageStorageEngine, create_storage_engine

__version__ = "0.1.0"

__all__ = [
    "ImageStorageEngine",
    "create_storage_engine",
    "ConfigurationError",
    "StorageEngineError",
    "StoreError",
    "StorageOptions",
    "TransformError",
    "UploadedFile",
    "UploadResult",
]
