"""Tests for the upload gateway."""

import asyncio
from unittest import mock

import pytest

from image_storage_engine.core.exceptions import InvalidArgumentError, StoreError, TransformError
from image_storage_engine.pipeline.upload import (
    StreamAborted,
    UploadAborted,
    UploadGateway,
    UploadStream,
    content_type_for,
    object_location,
    unquote_etag,
)
from image_storage_engine.testing import FakeS3Client, setup_test_s3_environment

PARAMS = {"Bucket": "test-bucket", "Key": "uploads/a.jpg", "ACL": "public-read"}


async def _write_all(handle, chunks):
    for chunk in chunks:
        await handle.write_stream.write(chunk)
    await handle.write_stream.close()
    return await handle.completion


class TestHelpers:
    """Tests for upload helper functions."""

    def test_content_type_for(self):
        assert content_type_for("a/b.JPG") == "image/jpeg"
        assert content_type_for("a.webp") == "image/webp"
        assert content_type_for("noext") == "application/octet-stream"

    def test_unquote_etag(self):
        assert unquote_etag('"abc123"') == "abc123"
        assert unquote_etag("'abc'") == "abc"
        assert unquote_etag("plain") == "plain"

    def test_object_location(self):
        client = FakeS3Client(endpoint_url="http://localhost:9000/")
        assert object_location(client, "b", "u/a b.jpg") == "http://localhost:9000/b/u/a%20b.jpg"

    def test_object_location_default_endpoint(self):
        assert object_location(object(), "b", "k") == "https://s3.amazonaws.com/b/k"


class TestUploadStream:
    """Tests for the writable end of an upload."""

    def test_write_after_end(self):
        async def run():
            stream = UploadStream()
            await stream.close()
            await stream.write(b"late")

        with pytest.raises(InvalidArgumentError, match="write after end"):
            asyncio.run(run())

    def test_abort_fails_the_reader(self):
        async def run():
            stream = UploadStream()
            await stream.write(b"a")
            stream.abort(TransformError("bad image"))
            return [chunk async for chunk in stream.chunks()]

        with pytest.raises(StreamAborted) as excinfo:
            asyncio.run(run())
        assert isinstance(excinfo.value.__cause__, TransformError)

    def test_fail_rejects_writes(self):
        async def run():
            stream = UploadStream(max_buffer=1)
            await stream.write(b"a")
            stream.fail(StoreError("gone"))
            await stream.write(b"b")

        with pytest.raises(UploadAborted):
            asyncio.run(run())


class TestBeginUpload:
    """Tests for UploadGateway.begin_upload."""

    @pytest.mark.parametrize("missing", ["Bucket", "Key", "ACL"])
    def test_required_params(self, missing):
        params = {k: v for k, v in PARAMS.items() if k != missing}

        async def run():
            UploadGateway().begin_upload(setup_test_s3_environment(), params)

        with pytest.raises(InvalidArgumentError, match="Params are required"):
            asyncio.run(run())

    def test_client_required(self):
        async def run():
            UploadGateway().begin_upload(None, PARAMS)

        with pytest.raises(InvalidArgumentError, match="client"):
            asyncio.run(run())

    def test_small_upload_uses_put_object(self):
        client = setup_test_s3_environment()

        async def run():
            handle = UploadGateway().begin_upload(client, PARAMS)
            return handle, await _write_all(handle, [b"abc", b"def"])

        handle, result = asyncio.run(run())

        stored = client.get_bucket("test-bucket").get_object("uploads/a.jpg")
        assert stored.body == b"abcdef"
        assert stored.content_type == "image/jpeg"
        assert stored.acl == "public-read"
        assert result == {
            "Location": "https://s3.fake.test/test-bucket/uploads/a.jpg",
            "ETag": stored.etag,
            "Bucket": "test-bucket",
            "Key": "uploads/a.jpg",
        }
        assert handle.params["ContentType"] == "image/jpeg"
        assert client.operations("CreateMultipartUpload") == []

    def test_explicit_content_type_kept(self):
        client = setup_test_s3_environment()

        async def run():
            handle = UploadGateway().begin_upload(client, {**PARAMS, "ContentType": "image/x-custom"})
            await _write_all(handle, [b"a"])

        asyncio.run(run())
        assert client.get_bucket("test-bucket").get_object("uploads/a.jpg").content_type == "image/x-custom"

    def test_large_upload_uses_multipart(self):
        client = setup_test_s3_environment()

        async def run():
            handle = UploadGateway(part_size=4).begin_upload(client, PARAMS)
            return await _write_all(handle, [b"abc", b"defgh", b"ij"])

        result = asyncio.run(run())

        assert client.get_bucket("test-bucket").get_object("uploads/a.jpg").body == b"abcdefghij"
        assert [call["PartNumber"] for call in client.operations("UploadPart")] == [1, 2, 3]
        assert result["Location"] == "https://s3.fake.test/test-bucket/uploads/a.jpg"
        assert client.operations("PutObject") == []

    def test_store_failure_becomes_store_error(self):
        client = setup_test_s3_environment()
        client.fail_key("uploads/a.jpg")

        async def run():
            handle = UploadGateway().begin_upload(client, PARAMS)
            return await _write_all(handle, [b"abc"])

        with pytest.raises(StoreError, match="InternalError"):
            asyncio.run(run())

    def test_multipart_failure_aborts_upload(self):
        client = setup_test_s3_environment()

        async def run():
            handle = UploadGateway(part_size=2).begin_upload(client, PARAMS)
            await handle.write_stream.write(b"abcd")
            while len(client.operations("UploadPart")) < 2:
                await asyncio.sleep(0)
            client.fail_key("uploads/a.jpg")
            await handle.write_stream.write(b"ef")
            await handle.write_stream.close()
            return await handle.completion

        with pytest.raises(StoreError):
            asyncio.run(run())
        assert client.aborted_uploads == ["upload-1"]

    def test_writer_abort_fails_completion(self):
        client = setup_test_s3_environment()

        async def run():
            handle = UploadGateway().begin_upload(client, PARAMS)
            await handle.write_stream.write(b"partial")
            handle.write_stream.abort(TransformError("bad image"))
            return await handle.completion

        with pytest.raises(StreamAborted) as excinfo:
            asyncio.run(run())
        assert isinstance(excinfo.value.__cause__, TransformError)
        assert client.get_bucket("test-bucket").get_object("uploads/a.jpg") is None

    def test_source_error_is_not_logged_as_store_failure(self):
        """A client disconnect is the writer's error, not an S3 failure."""
        client = setup_test_s3_environment()

        async def run():
            handle = UploadGateway().begin_upload(client, PARAMS)
            await handle.write_stream.write(b"partial")
            handle.write_stream.abort(ConnectionResetError("client went away"))
            return await handle.completion

        with mock.patch("logging.getLogger") as mock_get_logger:
            with pytest.raises(StreamAborted) as excinfo:
                asyncio.run(run())

        assert isinstance(excinfo.value.__cause__, ConnectionResetError)
        assert not isinstance(excinfo.value, StoreError)
        mock_get_logger.return_value.error.assert_not_called()

    def test_writes_fail_after_store_failure(self):
        client = setup_test_s3_environment()
        client.fail_key("uploads/a.jpg")

        async def run():
            handle = UploadGateway(part_size=1, max_buffer=1).begin_upload(client, PARAMS)
            with pytest.raises(UploadAborted):
                for _ in range(100):
                    await handle.write_stream.write(b"x")
            with pytest.raises(StoreError):
                await handle.completion

        asyncio.run(run())


class TestRemove:
    """Tests for UploadGateway.remove."""

    def test_deletes_object(self):
        client = setup_test_s3_environment()
        client.get_bucket("test-bucket").add_object("uploads/a.jpg", b"data")

        response = asyncio.run(
            UploadGateway().remove(client, {"Bucket": "test-bucket", "Key": "uploads/a.jpg"})
        )

        assert response["ResponseMetadata"]["HTTPStatusCode"] == 204
        assert client.get_bucket("test-bucket").get_object("uploads/a.jpg") is None

    @pytest.mark.parametrize("params", [None, {}, {"Bucket": "b"}, {"Key": "k"}])
    def test_required_params(self, params):
        with pytest.raises(InvalidArgumentError):
            asyncio.run(UploadGateway().remove(setup_test_s3_environment(), params))

    def test_delete_failure(self):
        client = setup_test_s3_environment()
        client.fail_deletes = True

        with pytest.raises(StoreError, match="AccessDenied"):
            asyncio.run(UploadGateway().remove(client, {"Bucket": "test-bucket", "Key": "a"}))
