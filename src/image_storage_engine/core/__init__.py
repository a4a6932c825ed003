"""Core utilities and shared components for the image storage engine."""

from .exceptions import (
    StorageEngineError,
    ConfigurationError,
    InvalidArgumentError,
    NameGenerationError,
    RandomnessError,
    HashError,
    TransformError,
    StoreError,
)
from .filename_utils import (
    build_object_key,
    extension_of,
    join_url,
    with_extension,
    with_suffix,
)
from .logging_config import get_logger, setup_logger
from .models import (
    PipelineTask,
    ResizeOptions,
    SizeOption,
    StorageOptions,
    StoredFile,
    UploadedFile,
    UploadResult,
    VariantSpec,
    load_options,
)
from .naming import NameGenerator

__all__ = [
    "StorageEngineError",
    "ConfigurationError",
    "InvalidArgumentError",
    "NameGenerationError",
    "RandomnessError",
    "HashError",
    "TransformError",
    "StoreError",
    "build_object_key",
    "extension_of",
    "join_url",
    "with_extension",
    "with_suffix",
    "get_logger",
    "setup_logger",
    "PipelineTask",
    "ResizeOptions",
    "SizeOption",
    "StorageOptions",
    "StoredFile",
    "UploadedFile",
    "UploadResult",
    "VariantSpec",
    "load_options",
    "NameGenerator",
]
