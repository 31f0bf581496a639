"""
Unit Tests: In-Memory Blob Backend

Tests:
    - Upload/download/delete lifecycle
    - MIME type persistence through upload_with_params
    - Strict delete policy
    - URL issuance is unsupported
"""

import asyncio
import io

from contentstore.core.errors import ErrorCode
from contentstore.storage import MemoryBackend, UploadParams
from contentstore.tests.support import assert_err, assert_ok


class TestMemoryBackend:
    """Tests for MemoryBackend."""

    def test_hello_world_lifecycle(self):
        """Upload, inspect, download and delete under key k1."""
        async def scenario():
            backend = MemoryBackend()
            assert_ok(await backend.upload("k1", b"Hello, World!"))

            meta = assert_ok(await backend.get_object_meta("k1"))
            assert meta.size == 13
            assert meta.key == "k1"

            stream = assert_ok(await backend.download("k1"))
            assert stream.read() == b"Hello, World!"

            assert_ok(await backend.delete("k1"))
            assert_err(await backend.download("k1"), ErrorCode.NOT_FOUND)

        asyncio.run(scenario())

    def test_upload_with_params_keeps_mime(self):
        async def scenario():
            backend = MemoryBackend()
            params = UploadParams(object_key="img", mime_type="image/png")
            assert_ok(await backend.upload_with_params(b"\x89PNG", params))
            meta = assert_ok(await backend.get_object_meta("img"))
            assert meta.content_type == "image/png"
            assert meta.metadata["mime_type"] == "image/png"

        asyncio.run(scenario())

    def test_plain_upload_defaults_mime(self):
        async def scenario():
            backend = MemoryBackend()
            assert_ok(await backend.upload("k", b"data"))
            meta = assert_ok(await backend.get_object_meta("k"))
            assert meta.content_type == "application/octet-stream"

        asyncio.run(scenario())

    def test_file_like_payload(self):
        async def scenario():
            backend = MemoryBackend()
            assert_ok(await backend.upload("k", io.BytesIO(b"streamed")))
            assert assert_ok(await backend.download("k")).read() == b"streamed"

        asyncio.run(scenario())

    def test_text_stream_rejected(self):
        async def scenario():
            backend = MemoryBackend()
            assert_err(await backend.upload("k", io.StringIO("text")), ErrorCode.BACKEND_FAILURE)

        asyncio.run(scenario())

    def test_overwrite_last_writer_wins(self):
        async def scenario():
            backend = MemoryBackend()
            await backend.upload("k", b"one")
            first = assert_ok(await backend.get_object_meta("k")).etag
            await backend.upload("k", b"second")
            meta = assert_ok(await backend.get_object_meta("k"))
            assert meta.size == 6
            assert meta.etag != first
            assert len(backend) == 1

        asyncio.run(scenario())

    def test_delete_missing_is_not_found(self):
        async def scenario():
            backend = MemoryBackend()
            assert_err(await backend.delete("missing"), ErrorCode.NOT_FOUND)
            assert_err(await backend.get_object_meta("missing"), ErrorCode.NOT_FOUND)

        asyncio.run(scenario())

    def test_exists(self):
        async def scenario():
            backend = MemoryBackend()
            assert assert_ok(await backend.exists("k")) is False
            await backend.upload("k", b"x")
            assert assert_ok(await backend.exists("k")) is True

        asyncio.run(scenario())

    def test_urls_unsupported(self):
        async def scenario():
            backend = MemoryBackend()
            await backend.upload("k", b"x")
            for result in (
                await backend.get_upload_url("k"),
                await backend.get_download_url("k", "f.txt"),
                await backend.get_preview_url("k"),
            ):
                assert_err(result, ErrorCode.UNSUPPORTED_OPERATION)

        asyncio.run(scenario())

    def test_concurrent_uploads(self):
        async def scenario():
            backend = MemoryBackend()
            await asyncio.gather(*(backend.upload(f"k{i}", bytes([i])) for i in range(50)))
            assert len(backend) == 50

        asyncio.run(scenario())
