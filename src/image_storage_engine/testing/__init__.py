"""Testing utilities and fakes for the image storage engine."""

from .fakes import (
    FakeS3Client,
    FakeLogger,
    PassThroughTransform,
    PassThroughTransformFactory,
    S3Object,
    S3Bucket,
    async_chunks,
    create_test_image,
    setup_test_s3_environment,
)

__all__ = [
    "FakeS3Client",
    "FakeLogger",
    "PassThroughTransform",
    "PassThroughTransformFactory",
    "S3Object",
    "S3Bucket",
    "async_chunks",
    "create_test_image",
    "setup_test_s3_environment",
]
