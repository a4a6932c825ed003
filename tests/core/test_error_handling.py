# tests/core/test_error_handling.py

import asyncio
from unittest import mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from image_storage_engine.core.exceptions import (
    InvalidArgumentError,
    StoreError,
    TransformError,
)
from image_storage_engine.core.error_handling import with_store_error_handling


@pytest.fixture
def mock_logger():
    """Fixture to mock the logger used by the decorator."""
    with mock.patch("logging.getLogger") as mock_get_logger:
        logger_instance = mock.MagicMock()
        mock_get_logger.return_value = logger_instance
        yield logger_instance


def _client_error(code="AccessDenied"):
    return ClientError({"Error": {"Code": code, "Message": "nope"}}, "PutObject")


# --- Tests for @with_store_error_handling decorator ---

def test_with_store_error_handling_success(mock_logger):
    """Test the decorator when the coroutine succeeds."""
    @with_store_error_handling
    async def store():
        return {"ETag": '"abc"'}

    assert asyncio.run(store()) == {"ETag": '"abc"'}
    mock_logger.error.assert_not_called()


def test_with_store_error_handling_wraps_client_error(mock_logger):
    """Test botocore ClientError is logged and re-raised as StoreError."""
    @with_store_error_handling
    async def store():
        raise _client_error("NoSuchBucket")

    with pytest.raises(StoreError, match="S3 operation failed in store") as excinfo:
        asyncio.run(store())

    assert isinstance(excinfo.value.__cause__, ClientError)
    mock_logger.error.assert_called_once()
    assert "NoSuchBucket" in mock_logger.error.call_args[0][0]


def test_with_store_error_handling_wraps_botocore_error(mock_logger):
    """Test connection failures become StoreError."""
    @with_store_error_handling
    async def store():
        raise EndpointConnectionError(endpoint_url="https://s3.invalid")

    with pytest.raises(StoreError):
        asyncio.run(store())
    mock_logger.error.assert_called_once()


def test_with_store_error_handling_wraps_unexpected_error(mock_logger):
    """Test any other exception is logged with a traceback and wrapped."""
    @with_store_error_handling
    async def store():
        raise RuntimeError("socket closed")

    with pytest.raises(StoreError, match="socket closed"):
        asyncio.run(store())

    args, kwargs = mock_logger.error.call_args
    assert "Unexpected error in 'store'" in args[0]
    assert kwargs.get("exc_info") is True


@pytest.mark.parametrize("error", [InvalidArgumentError("bad params"), TransformError("bad image")])
def test_with_store_error_handling_passes_engine_errors(mock_logger, error):
    """Test engine errors are re-raised unchanged and not logged."""
    @with_store_error_handling
    async def store():
        raise error

    with pytest.raises(type(error)) as excinfo:
        asyncio.run(store())

    assert excinfo.value is error
    mock_logger.error.assert_not_called()


def test_with_store_error_handling_keeps_metadata():
    """Test functools.wraps keeps the wrapped coroutine's name."""
    @with_store_error_handling
    async def upload_variant():
        """Docstring."""

    assert upload_variant.__name__ == "upload_variant"
    assert upload_variant.__doc__ == "Docstring."
