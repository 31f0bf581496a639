"""
Integration Tests: Content Service

End-to-end flows over the in-memory repository with memory and
filesystem backends. Tests:
    - upload_content bookkeeping (checksum, size, MIME, status)
    - Derived content through the facade
    - delete_content refusal and object cleanup
    - Event publication and sink isolation
    - Construction from configuration
"""

import asyncio
import logging

import pytest

from contentstore.core.config import ContentStoreConfig
from contentstore.core.errors import ErrorCode
from contentstore.core.models import ContentAttributes, ContentMetadata, ContentStatus, ObjectStatus
from contentstore.objectkey import LegacyKeyGenerator
from contentstore.observability import JsonFormatter
from contentstore.repository import ListDerivedContentParams
from contentstore.service import ContentService, EventKind, HookEventSink
from contentstore.storage import BackendConfig, BackendType, FileSystemBackend, FileSystemConfig, MemoryBackend
from contentstore.tests.support import assert_err, assert_ok, ids

HELLO_SHA256 = "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"


def make_service(**kwargs):
    service = ContentService(**kwargs)
    assert_ok(service.register_backend("memory", MemoryBackend()))
    return service


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestUploadContent:
    """Tests for the one-call upload flow."""

    def test_memory_end_to_end(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            result = assert_ok(await service.upload_content(
                owner, tenant, b"Hello, World!", "hello.txt", mime_type="text/plain", tags=["greeting"],
            ))

            assert result.content.status is ContentStatus.UPLOADED
            assert result.content.name == "hello.txt"
            assert result.object.status is ObjectStatus.UPLOADED
            assert result.object.storage_backend_name == "memory"
            assert result.metadata.checksum == HELLO_SHA256
            assert result.metadata.checksum_algorithm == "sha256"
            assert result.metadata.file_size == 13
            assert result.metadata.mime_type == "text/plain"
            assert result.metadata.tags == ["greeting"]

            stream = assert_ok(await service.download_object(result.object.id))
            assert stream.read() == b"Hello, World!"

        asyncio.run(scenario())

    def test_filesystem_end_to_end(self, tmp_path):
        async def scenario():
            service = ContentService(default_backend="local")
            backend = FileSystemBackend(FileSystemConfig(base_dir=tmp_path))
            assert_ok(service.register_backend("local", backend))
            owner, tenant = ids()

            result = assert_ok(await service.upload_content(
                owner, tenant, b"%PDF-1.4 body", "report.pdf",
            ))
            assert result.metadata.mime_type == "application/pdf"
            assert (tmp_path / result.object.object_key).read_bytes() == b"%PDF-1.4 body"

            assert_ok(await service.delete_content(result.content.id))
            assert not (tmp_path / result.object.object_key).exists()
            assert list(tmp_path.iterdir()) == []

        asyncio.run(scenario())

    def test_unknown_backend(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            assert_err(
                await service.upload_content(owner, tenant, b"x", "a.bin", storage_backend_name="gone"),
                ErrorCode.NOT_FOUND,
            )

        asyncio.run(scenario())

    def test_second_version(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            first = assert_ok(await service.upload_content(owner, tenant, b"v1", "a.txt"))
            obj = assert_ok(await service.create_object(first.content.id))
            assert obj.version == 2
            assert_ok(await service.upload_object(obj.id, b"version two"))

            meta = assert_ok(await service.get_content_metadata(first.content.id))
            assert meta.file_size == 11
            versions = assert_ok(await service.get_objects_by_content_id(first.content.id))
            assert [o.version for o in versions] == [1, 2]

        asyncio.run(scenario())


    def test_dot_file_names_keep_objects_apart(self, tmp_path):
        async def scenario():
            service = ContentService(default_backend="local", key_generator=LegacyKeyGenerator())
            assert_ok(service.register_backend("local", FileSystemBackend(FileSystemConfig(base_dir=tmp_path))))
            owner, tenant = ids()
            content = assert_ok(await service.create_content(owner, tenant))
            first = assert_ok(await service.create_object(content.id, file_name=".."))
            second = assert_ok(await service.create_object(content.id, file_name=".."))
            assert first.object_key.endswith("/__")
            assert first.object_key != second.object_key

            assert_ok(await service.upload_object(first.id, b"AAAA"))
            assert_ok(await service.upload_object(second.id, b"BB"))
            assert assert_ok(await service.download_object(first.id)).read() == b"AAAA"
            assert assert_ok(await service.download_object(second.id)).read() == b"BB"

        asyncio.run(scenario())


class TestDerivedThroughService:
    def test_derive_and_query(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            root = assert_ok(await service.create_content(owner, tenant, ContentAttributes(name="photo")))
            thumb = assert_ok(await service.create_derived_content(
                root.id, owner, tenant, "thumbnail", variant="thumbnail_256",
            ))
            assert thumb.derivation_level == 1

            children = assert_ok(await service.get_direct_children(root.id))
            assert [c.id for c in children] == [thumb.id]
            tree = assert_ok(await service.get_tree(root.id))
            assert [c.id for c in tree] == [root.id, thumb.id]
            ancestors = assert_ok(await service.get_ancestors(thumb.id))
            assert [c.id for c in ancestors] == [root.id]

            params = ListDerivedContentParams(parent_ids=[root.id])
            assert assert_ok(await service.count_derived_content(params)) == 1
            rels = assert_ok(await service.list_derived_content(params))
            assert rels[0].variant == "thumbnail_256"
            rel = assert_ok(await service.get_derived_relationship(thumb.id))
            assert rel.parent_id == root.id

        asyncio.run(scenario())

    def test_depth_exceeded_surfaces(self):
        async def scenario():
            service = make_service(max_depth=1)
            owner, tenant = ids()
            root = assert_ok(await service.create_content(owner, tenant))
            child = assert_ok(await service.create_derived_content(root.id, owner, tenant, "x"))
            err = assert_err(
                await service.create_derived_content(child.id, owner, tenant, "x"),
                ErrorCode.DEPTH_EXCEEDED,
            )
            assert err.context["trace"] == ["create_derived_content"]

        asyncio.run(scenario())


class TestMetadataOnCreate:
    def test_caller_metadata_not_mutated(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            placeholder, _ = ids()
            metadata = ContentMetadata(content_id=placeholder, tags=["raw"])

            root = assert_ok(await service.create_content(owner, tenant, metadata=metadata))
            child = assert_ok(await service.create_derived_content(
                root.id, owner, tenant, "thumbnail", metadata=metadata,
            ))
            assert metadata.content_id == placeholder

            root_meta = assert_ok(await service.get_content_metadata(root.id))
            child_meta = assert_ok(await service.get_content_metadata(child.id))
            assert root_meta.content_id == root.id
            assert child_meta.content_id == child.id
            assert child_meta.tags == ["raw"]

        asyncio.run(scenario())


class TestDeleteContent:
    """Tests for delete_content."""

    def test_refuses_with_children(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            root = assert_ok(await service.create_content(owner, tenant))
            child = assert_ok(await service.create_derived_content(root.id, owner, tenant, "x"))

            err = assert_err(await service.delete_content(root.id), ErrorCode.INVALID_STATE)
            assert err.context["children"] == 1

            assert_ok(await service.delete_content(child.id))
            assert_ok(await service.delete_content(root.id))
            assert_err(await service.get_content(root.id), ErrorCode.NOT_FOUND)

        asyncio.run(scenario())

    def test_deletes_objects_first(self):
        async def scenario():
            service = make_service()
            backend = assert_ok(service.registry.get("memory"))
            owner, tenant = ids()
            uploaded = assert_ok(await service.upload_content(owner, tenant, b"data", "d.bin"))
            assert len(backend) == 1

            assert_ok(await service.delete_content(uploaded.content.id))
            assert len(backend) == 0
            assert_err(await service.get_object(uploaded.object.id), ErrorCode.NOT_FOUND)

        asyncio.run(scenario())

    def test_missing(self):
        async def scenario():
            service = make_service()
            owner, _ = ids()
            assert_err(await service.delete_content(owner), ErrorCode.NOT_FOUND)

        asyncio.run(scenario())


class TestContentStatus:
    def test_status_rules(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            content = assert_ok(await service.create_content(owner, tenant))
            updated = assert_ok(await service.update_content_status(content.id, ContentStatus.UPLOADED))
            assert updated.status is ContentStatus.UPLOADED
            assert_err(
                await service.update_content_status(content.id, ContentStatus.CREATED),
                ErrorCode.INVALID_STATE,
            )

        asyncio.run(scenario())

    def test_list_content(self):
        async def scenario():
            service = make_service()
            owner, tenant = ids()
            other_owner, _ = ids()
            await service.create_content(owner, tenant)
            await service.create_content(other_owner, tenant)
            assert len(assert_ok(await service.list_content(owner_id=owner))) == 1
            assert len(assert_ok(await service.list_content(tenant_id=tenant))) == 2

        asyncio.run(scenario())


class TestEvents:
    """Tests for lifecycle event publication."""

    def test_upload_content_events(self):
        async def scenario():
            sink = HookEventSink()
            seen = []
            for kind in EventKind:
                sink.register(kind, lambda event: seen.append(event.kind))
            service = make_service(events=sink)
            owner, tenant = ids()
            await service.upload_content(owner, tenant, b"x", "x.bin")

            assert seen == [
                EventKind.CONTENT_CREATED,
                EventKind.OBJECT_CREATED,
                EventKind.OBJECT_UPLOADED,
                EventKind.CONTENT_UPDATED,
                EventKind.CONTENT_STATUS_CHANGED,
            ]

        asyncio.run(scenario())

    def test_async_hook(self):
        async def scenario():
            sink = HookEventSink()
            seen = []

            async def on_deleted(event):
                seen.append(event.content_id)

            sink.register(EventKind.CONTENT_DELETED, on_deleted)
            service = make_service(events=sink)
            owner, tenant = ids()
            content = assert_ok(await service.create_content(owner, tenant))
            await service.delete_content(content.id)
            assert seen == [content.id]

        asyncio.run(scenario())

    def test_failing_sink_does_not_fail_operation(self):
        async def scenario():
            sink = HookEventSink()

            def explode(event):
                raise RuntimeError("sink down")

            sink.register(EventKind.CONTENT_CREATED, explode)
            service = make_service(events=sink)
            owner, tenant = ids()
            assert_ok(await service.create_content(owner, tenant))

        asyncio.run(scenario())


class TestFromConfig:
    """Tests for ContentService.from_config."""

    def test_memory_and_filesystem(self, tmp_path, restore_root):
        async def scenario():
            config = ContentStoreConfig(
                default_backend="scratch",
                backends=(
                    BackendConfig(name="scratch"),
                    BackendConfig(
                        name="local",
                        backend_type=BackendType.FILESYSTEM,
                        filesystem=FileSystemConfig(base_dir=tmp_path),
                    ),
                ),
                key_generator="legacy",
                legacy_prefix="C",
            )
            service = await ContentService.from_config(config)
            try:
                assert service.registry.names() == ["local", "scratch"]
                owner, tenant = ids()
                result = assert_ok(await service.upload_content(owner, tenant, b"x", "a.bin"))
                assert result.object.storage_backend_name == "scratch"
                assert result.object.object_key.startswith(f"C/{result.content.id}/")
            finally:
                await service.close()

        asyncio.run(scenario())

    def test_invalid_config(self):
        async def scenario():
            config = ContentStoreConfig(default_backend="missing")
            with pytest.raises(ValueError):
                await ContentService.from_config(config)

        asyncio.run(scenario())

    def test_applies_logging_config(self, restore_root):
        async def scenario():
            config = ContentStoreConfig(log_level="debug", log_json=True)
            service = await ContentService.from_config(config)
            await service.close()

        asyncio.run(scenario())
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_logging_left_alone_on_request(self, restore_root):
        root = logging.getLogger()
        before = list(root.handlers)

        async def scenario():
            config = ContentStoreConfig(log_level="ERROR")
            service = await ContentService.from_config(config, configure_logging=False)
            await service.close()

        asyncio.run(scenario())
        assert root.handlers == before
