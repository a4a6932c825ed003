"""Upload pipeline: planning, fan-out, transform, upload and compensation."""

from .engine import ImageStorageEngine, create_storage_engine
from .orchestrator import UploadOrchestrator
from .planner import VariantPlanner
from .registry import InFlightRegistry
from .tee import StreamTee
from .transform import TransformFactory, TransformStream
from .upload import UploadGateway, UploadHandle, UploadStream

__all__ = [
    "ImageStorageEngine",
    "create_storage_engine",
    "UploadOrchestrator",
    "VariantPlanner",
    "InFlightRegistry",
    "StreamTee",
    "TransformFactory",
    "TransformStream",
    "UploadGateway",
    "UploadHandle",
    "UploadStream",
]
