"""Shared data models for the image storage engine."""

import asyncio
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

FitType = Literal["cover", "contain", "fill", "inside", "outside"]

FIT_TYPES = ("cover", "contain", "fill", "inside", "outside")
DEFAULT_VARIANT_LABEL = "original"
MIN_PART_SIZE = 5 * 1024 * 1024


class ResizeOptions(BaseModel):
    """How an image is fitted into the requested box."""

    model_config = ConfigDict(extra="allow")

    fit: Optional[FitType] = None
    position: str = "centre"


class SizeOption(BaseModel):
    """One configured output size; an empty entry stores the original."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[str] = None
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    options: ResizeOptions = Field(default_factory=ResizeOptions)
    webp: bool = Field(default=False, alias="webP")


class StorageOptions(BaseModel):
    """Merged options for one storage engine instance."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    acl: str = Field(default="public-read", min_length=1)
    rotate: bool = True
    grayscale: bool = False
    with_metadata: bool = Field(default=False, alias="withMetadata")
    webp: bool = Field(default=False, alias="webP")
    fit: FitType = "outside"
    sizes: List[SizeOption] = Field(default_factory=lambda: [SizeOption()])
    bucket: str = ""
    s3_path: str = Field(default="", alias="s3Path")
    cdn: str = ""
    part_size: int = Field(default=MIN_PART_SIZE, ge=MIN_PART_SIZE)
    tap_buffer: int = Field(default=16, gt=0)

    @field_validator("sizes", mode="before")
    @classmethod
    def _sizes_must_be_list(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            raise ValueError("If sizes is provided it must be a list of size entries")
        return list(value)


def load_options(**overrides: Any) -> StorageOptions:
    """
    Merge defaults, environment fallbacks and explicit overrides.

    Explicit values win; ``S3_BUCKET``, ``S3_PATH`` and ``CDN_HOST`` fill
    ``bucket``, ``s3_path`` and ``cdn`` only when they are not given.

    Raises:
        ConfigurationError: for an invalid fit, a non-list ``sizes``, bad
            size entries or when no bucket can be resolved.
    """
    merged: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
    merged["bucket"] = merged.get("bucket") or os.getenv("S3_BUCKET", "")
    if not (merged.get("s3_path") or merged.get("s3Path")):
        merged.pop("s3Path", None)
        merged["s3_path"] = os.getenv("S3_PATH", "")
    merged["cdn"] = merged.get("cdn") or os.getenv("CDN_HOST", "")

    try:
        options = StorageOptions(**merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid storage options: {exc}") from exc

    if not options.bucket:
        raise ConfigurationError(
            "A valid bucket must be provided through options or env.S3_BUCKET"
        )
    return options


@dataclass(frozen=True)
class VariantSpec:
    """One output variant of a single upload."""

    label: Optional[str] = None
    width: Optional[Any] = None
    height: Optional[Any] = None
    resize_options: ResizeOptions = field(default_factory=ResizeOptions)
    produces_web_alternate: bool = False

    @property
    def variant_label(self) -> str:
        return self.label if self.label else DEFAULT_VARIANT_LABEL


@dataclass
class PipelineTask:
    """A running transform -> upload pipeline for one destination key."""

    destination_key: str
    filename: str
    variant_label: str
    completion: "asyncio.Future[Dict[str, Any]]"


@dataclass
class UploadedFile:
    """File descriptor handed over by the host middleware."""

    stream: Any
    originalname: str
    mimetype: Optional[str] = None


class StoredFile(BaseModel):
    """One stored variant as reported back to the host."""

    name: str
    variant_label: str
    url: str
    content_hash: str


class UploadResult(BaseModel):
    """Ordered result of one upload session."""

    files: List[StoredFile] = Field(default_factory=list)
