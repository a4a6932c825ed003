"""Streaming uploads to and deletes from the S3 compatible object store."""

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote

from ..core.error_handling import with_store_error_handling
from ..core.exceptions import InvalidArgumentError, StorageEngineError, StoreError
from ..core.logging_config import get_logger
from ..core.models import MIN_PART_SIZE
from ..core.protocols import REQUIRED_CLIENT_METHODS, S3ClientProtocol

DEFAULT_ENDPOINT = "https://s3.amazonaws.com"

CONTENT_TYPES = {
    "webp": "image/webp",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "avif": "image/avif",
}

_EOF = object()


class UploadAborted(StoreError):
    """The upload behind a stream failed; its completion carries the cause."""


class StreamAborted(StorageEngineError):
    """The writer gave up on the stream; the writer's error is the cause."""


def content_type_for(key: str) -> str:
    """Content type from the key's extension."""
    extension = key.rsplit(".", 1)[-1].lower() if "." in key else ""
    return CONTENT_TYPES.get(extension, "application/octet-stream")


def unquote_etag(etag: str) -> str:
    """S3 returns ETags wrapped in quotes; strip every quote character."""
    return etag.replace('"', "").replace("'", "")


def object_location(client: Any, bucket: str, key: str) -> str:
    """Path style URL of an object on the client's endpoint."""
    meta = getattr(client, "meta", None)
    endpoint = getattr(meta, "endpoint_url", None) or DEFAULT_ENDPOINT
    return f"{endpoint.rstrip('/')}/{bucket}/{quote(key)}"


def _validate_client(client: Any) -> None:
    if client is None or not all(
        callable(getattr(client, name, None)) for name in REQUIRED_CLIENT_METHODS
    ):
        raise InvalidArgumentError("An async S3 client is a required parameter")


class UploadStream:
    """
    Writable end of an upload.

    The pipeline writes chunks and closes it; the upload's completion task
    drains it. ``abort`` (writer side) makes the completion fail with
    ``StreamAborted`` caused by the given error; ``fail`` (reader side)
    makes further writes raise ``UploadAborted``.
    """

    def __init__(self, max_buffer: int = 16):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_buffer)
        self._closed = False
        self._error: Optional[BaseException] = None
        self._failed: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_writable(self) -> None:
        if self._failed is not None:
            raise UploadAborted(f"Upload failed: {self._failed}") from self._failed
        if self._closed:
            raise InvalidArgumentError("write after end")

    async def write(self, chunk: bytes) -> None:
        self._check_writable()
        await self._queue.put(chunk)

    async def close(self) -> None:
        self._check_writable()
        self._closed = True
        await self._queue.put(_EOF)

    def abort(self, error: BaseException) -> None:
        self._error = error
        self._closed = True
        if not self._queue.full():
            self._queue.put_nowait(_EOF)

    def fail(self, error: BaseException) -> None:
        self._failed = error
        while not self._queue.empty():
            self._queue.get_nowait()

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if self._error is not None:
                raise StreamAborted(f"Stream aborted by writer: {self._error}") from self._error
            if item is _EOF:
                return
            yield item


@dataclass
class UploadHandle:
    """Writable stream plus the task resolving to the stored object's metadata."""

    write_stream: UploadStream
    completion: "asyncio.Task[Dict[str, Any]]"
    params: Dict[str, Any]


class UploadGateway:
    """Starts streaming uploads and deletes objects."""

    def __init__(self, part_size: int = MIN_PART_SIZE, max_buffer: int = 16):
        self._part_size = part_size
        self._max_buffer = max_buffer
        self._logger = get_logger("upload-gateway")

    def begin_upload(self, client: S3ClientProtocol, params: Dict[str, Any]) -> UploadHandle:
        """
        Start an upload of whatever gets written to the returned stream.

        Args:
            client: Async S3 client
            params: ``Bucket``, ``Key`` and ``ACL``, all required, plus any
                extra ``put_object`` arguments

        Returns:
            UploadHandle whose completion resolves to ``{"Location", "ETag",
            "Bucket", "Key"}``

        Raises:
            InvalidArgumentError: If a parameter is missing or the client is unusable
        """
        if not params or not all(params.get(name) for name in ("Bucket", "Key", "ACL")):
            raise InvalidArgumentError(
                "Params are required (i.e. {Bucket: bucket, Key: key, ACL: acl})"
            )
        _validate_client(client)

        params = dict(params)
        params.setdefault("ContentType", content_type_for(params["Key"]))
        stream = UploadStream(self._max_buffer)
        completion = asyncio.create_task(self._upload(client, params, stream))
        return UploadHandle(write_stream=stream, completion=completion, params=params)

    @with_store_error_handling
    async def _upload(
        self, client: S3ClientProtocol, params: Dict[str, Any], stream: UploadStream
    ) -> Dict[str, Any]:
        bucket, key = params["Bucket"], params["Key"]
        buffer = bytearray()
        parts: List[Dict[str, Any]] = []
        upload_id: Optional[str] = None

        try:
            async for chunk in stream.chunks():
                buffer.extend(chunk)
                while len(buffer) >= self._part_size:
                    if upload_id is None:
                        response = await client.create_multipart_upload(**params)
                        upload_id = response["UploadId"]
                        self._logger.debug(f"Started multipart upload of s3://{bucket}/{key}")
                    part = bytes(buffer[: self._part_size])
                    del buffer[: self._part_size]
                    parts.append(await self._upload_part(client, bucket, key, upload_id, parts, part))

            if upload_id is None:
                response = await client.put_object(Body=bytes(buffer), **params)
                location = object_location(client, bucket, key)
            else:
                if buffer:
                    parts.append(
                        await self._upload_part(client, bucket, key, upload_id, parts, bytes(buffer))
                    )
                response = await client.complete_multipart_upload(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )
                location = response.get("Location") or object_location(client, bucket, key)
        except BaseException as exc:
            if isinstance(exc, StreamAborted):
                self._logger.debug(f"Upload of s3://{bucket}/{key} dropped: {exc}")
            stream.fail(exc)
            if upload_id is not None:
                await self._abort_multipart(client, bucket, key, upload_id)
            raise

        self._logger.debug(f"Stored s3://{bucket}/{key}")
        return {"Location": location, "ETag": response["ETag"], "Bucket": bucket, "Key": key}

    async def _upload_part(
        self,
        client: S3ClientProtocol,
        bucket: str,
        key: str,
        upload_id: str,
        parts: List[Dict[str, Any]],
        body: bytes,
    ) -> Dict[str, Any]:
        part_number = len(parts) + 1
        response = await client.upload_part(
            Bucket=bucket, Key=key, UploadId=upload_id, PartNumber=part_number, Body=body
        )
        return {"ETag": response["ETag"], "PartNumber": part_number}

    async def _abort_multipart(
        self, client: S3ClientProtocol, bucket: str, key: str, upload_id: str
    ) -> None:
        try:
            await client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                f"Could not abort multipart upload {upload_id} of s3://{bucket}/{key}: {exc}"
            )

    @with_store_error_handling
    async def remove(self, client: S3ClientProtocol, params: Dict[str, Any]) -> Dict[str, Any]:
        """Delete the object named by ``{"Bucket", "Key"}``."""
        if not params or not params.get("Bucket") or not params.get("Key"):
            raise InvalidArgumentError("Params are required (i.e. {Bucket: bucket, Key: key})")
        _validate_client(client)

        self._logger.debug(f"Deleting s3://{params['Bucket']}/{params['Key']}")
        return await client.delete_object(Bucket=params["Bucket"], Key=params["Key"])
