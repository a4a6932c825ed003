# src/image_storage_engine/core/error_handling.py

import functools
import logging

from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StorageEngineError, StoreError


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "Unknown")
    return type(exc).__name__


def with_store_error_handling(func):
    """
    A decorator for coroutines talking to the object store.

    botocore failures and any other unexpected exception are logged and
    re-raised as ``StoreError`` with the original exception chained.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + "." + func.__name__)
        try:
            return await func(*args, **kwargs)
        except StorageEngineError:
            raise
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 operation '{func.__name__}' failed ({_error_code(e)}): {e}")
            raise StoreError(f"S3 operation failed in {func.__name__}: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error in '{func.__name__}': {e}", exc_info=True)
            raise StoreError(f"S3 operation failed in {func.__name__}: {e}") from e
    return wrapper
