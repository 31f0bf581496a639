"""
Unit Tests: S3-Compatible Blob Backend

Runs against FakeS3Client (no network). Tests:
    - Put/get/head/delete mapping and error translation
    - Idempotent delete
    - Server-side encryption parameters
    - Presigned URL dispositions
    - Bucket creation on connect
    - Configuration validation and client kwargs
"""

import asyncio

import pytest
from botocore.exceptions import EndpointConnectionError

from contentstore.core.errors import ErrorCode
from contentstore.storage import S3Backend, S3Config, UploadParams
from contentstore.tests.support import FakeS3Client, assert_err, assert_ok, client_error

BUCKET = "content-bucket"


def make_backend(**config_kwargs):
    client = FakeS3Client(buckets=(BUCKET,))
    backend = S3Backend(S3Config(bucket_name=BUCKET, **config_kwargs), client=client)
    return backend, client


class TestS3Operations:
    """Tests for the blob contract over S3 calls."""

    def test_round_trip(self):
        async def scenario():
            backend, client = make_backend()
            params = UploadParams(object_key="k1", mime_type="text/plain")
            assert_ok(await backend.upload_with_params(b"Hello, World!", params))

            meta = assert_ok(await backend.get_object_meta("k1"))
            assert meta.size == 13
            assert meta.content_type == "text/plain"
            assert meta.etag == "0123456789abcdef"
            assert meta.metadata["content_type"] == "text/plain"

            stream = assert_ok(await backend.download("k1"))
            assert stream.read() == b"Hello, World!"

            put = next(kw for name, kw in client.calls if name == "put_object")
            assert put["ContentType"] == "text/plain"
            assert "ServerSideEncryption" not in put

        asyncio.run(scenario())

    def test_plain_upload_uses_default_mime(self):
        async def scenario():
            backend, client = make_backend()
            assert_ok(await backend.upload("k", b"x"))
            assert client.buckets[BUCKET]["k"]["ContentType"] == "application/octet-stream"

        asyncio.run(scenario())

    def test_missing_key_is_not_found(self):
        async def scenario():
            backend, _ = make_backend()
            assert_err(await backend.download("missing"), ErrorCode.NOT_FOUND)
            assert_err(await backend.get_object_meta("missing"), ErrorCode.NOT_FOUND)

        asyncio.run(scenario())

    def test_delete_is_idempotent(self):
        async def scenario():
            backend, client = make_backend()
            await backend.upload("k", b"x")
            assert_ok(await backend.delete("k"))
            assert_ok(await backend.delete("k"))
            assert "k" not in client.buckets[BUCKET]

        asyncio.run(scenario())

    def test_client_errors_become_backend_failures(self):
        async def scenario():
            backend, client = make_backend()
            client.fail_with = client_error("AccessDenied", "PutObject", 403)
            err = assert_err(await backend.upload("k", b"x"), ErrorCode.BACKEND_FAILURE)
            assert err.cause is not None
            assert err.context["backend"] == "s3"

            client.fail_with = EndpointConnectionError(endpoint_url="http://s3")
            assert_err(await backend.get_object_meta("k"), ErrorCode.BACKEND_FAILURE)

        asyncio.run(scenario())

    def test_not_connected(self):
        async def scenario():
            backend = S3Backend(S3Config(bucket_name=BUCKET))
            assert_err(await backend.upload("k", b"x"), ErrorCode.BACKEND_FAILURE)

        asyncio.run(scenario())

    def test_server_side_encryption(self):
        async def scenario():
            backend, client = make_backend(
                enable_sse=True, sse_algorithm="aws:kms", sse_kms_key_id="key-1",
            )
            await backend.upload("k", b"secret")
            put = client.calls[-1][1]
            assert put["ServerSideEncryption"] == "aws:kms"
            assert put["SSEKMSKeyId"] == "key-1"
            meta = assert_ok(await backend.get_object_meta("k"))
            assert meta.metadata["server_side_encryption"] == "aws:kms"

        asyncio.run(scenario())


class TestS3PresignedUrls:
    """Tests for presigned URL issuance."""

    def test_upload_url(self):
        async def scenario():
            backend, client = make_backend(presign_duration_seconds=600)
            url = assert_ok(await backend.get_upload_url("k"))
            assert "method=put_object" in url
            call = client.calls[-1][1]
            assert call["ExpiresIn"] == 600

        asyncio.run(scenario())

    def test_download_url_sets_attachment(self):
        async def scenario():
            backend, client = make_backend()
            assert_ok(await backend.get_download_url("k", 'my "photo".jpg'))
            params = client.calls[-1][1]["Params"]
            assert params["ResponseContentDisposition"] == 'attachment; filename="my photo.jpg"'

        asyncio.run(scenario())

    def test_preview_url_inline(self):
        async def scenario():
            backend, client = make_backend()
            assert_ok(await backend.get_preview_url("k"))
            assert client.calls[-1][1]["Params"]["ResponseContentDisposition"] == "inline"

        asyncio.run(scenario())


class TestS3Connect:
    def test_creates_missing_bucket(self):
        async def scenario():
            client = FakeS3Client()
            config = S3Config(bucket_name="new-bucket", region="eu-west-1",
                              create_bucket_if_not_exist=True)
            backend = S3Backend(config, client=client)
            assert_ok(await backend.connect())
            assert "new-bucket" in client.buckets
            create = next(kw for name, kw in client.calls if name == "create_bucket")
            assert create["CreateBucketConfiguration"] == {"LocationConstraint": "eu-west-1"}

        asyncio.run(scenario())

    def test_existing_bucket_untouched(self):
        async def scenario():
            client = FakeS3Client(buckets=(BUCKET,))
            config = S3Config(bucket_name=BUCKET, create_bucket_if_not_exist=True)
            backend = S3Backend(config, client=client)
            assert_ok(await backend.connect())
            assert [name for name, _ in client.calls] == ["head_bucket"]

        asyncio.run(scenario())

    def test_injected_client_not_closed(self):
        async def scenario():
            backend, client = make_backend()
            await backend.close()
            assert client.closed is False

        asyncio.run(scenario())


class TestS3Config:
    """Tests for S3Config validation and client kwargs."""

    def test_rejects_short_bucket(self):
        with pytest.raises(ValueError):
            S3Config(bucket_name="ab")

    def test_kms_requires_key(self):
        with pytest.raises(ValueError):
            S3Config(bucket_name=BUCKET, enable_sse=True, sse_algorithm="aws:kms")

    def test_client_kwargs(self):
        config = S3Config(
            bucket_name=BUCKET,
            endpoint_url="http://minio:9000",
            use_path_style=True,
            verify_ssl=False,
        )
        kwargs = config.get_client_kwargs()
        assert kwargs["endpoint_url"] == "http://minio:9000"
        assert kwargs["verify"] is False
        assert kwargs["config"].s3["addressing_style"] == "path"

    def test_session_kwargs(self):
        assert S3Config(bucket_name=BUCKET).get_session_kwargs() == {}
        config = S3Config(bucket_name=BUCKET, access_key_id="a", secret_access_key="s")
        assert config.get_session_kwargs() == {
            "aws_access_key_id": "a",
            "aws_secret_access_key": "s",
        }

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CONTENTSTORE_S3_BUCKET", "env-bucket")
        monkeypatch.setenv("CONTENTSTORE_S3_USE_PATH_STYLE", "true")
        monkeypatch.setenv("CONTENTSTORE_S3_PRESIGN_DURATION", "120")
        config = S3Config.from_env()
        assert config.bucket_name == "env-bucket"
        assert config.use_path_style is True
        assert config.presign_duration_seconds == 120

    def test_from_env_requires_bucket(self, monkeypatch):
        monkeypatch.delenv("CONTENTSTORE_S3_BUCKET", raising=False)
        with pytest.raises(ValueError):
            S3Config.from_env()
