"""
Unit Tests: Object Key Strategies

Tests:
    - Legacy, git-like, hashed and tenant-aware layouts
    - Derived placement and file name sanitization
    - Shard fan-out over random object ids
    - Factory and presets
"""

from uuid import UUID, uuid4

import pytest

from contentstore.objectkey import (
    CustomKeyGenerator,
    GitLikeKeyGenerator,
    HashedGitLikeKeyGenerator,
    KeyMetadata,
    LegacyKeyGenerator,
    TenantAwareKeyGenerator,
    create_key_generator,
    high_performance_generator,
    is_sanitized,
    multi_tenant_generator,
    recommended_generator,
    sanitize_filename,
    sanitize_path_component,
    shard_distribution,
    shard_of,
)

CONTENT_ID = UUID("11111111-2222-3333-4444-555555555555")
OBJECT_ID = UUID("abcdef01-2345-6789-abcd-ef0123456789")


class TestSanitize:
    """Tests for file name and path component sanitization."""

    def test_replaces_unsafe_characters(self):
        assert sanitize_filename('a/b\\c:d*e?f"g<h>i|j k.txt') == "a_b_c_d_e_f_g_h_i_j_k.txt"

    def test_path_component_lowercases(self):
        assert sanitize_path_component("Thumb Nail") == "thumb_nail"

    @pytest.mark.parametrize("value,expected", [("..", "__"), (".", "_"), ("...", "..."), (".hidden", ".hidden")])
    def test_dot_segments_replaced(self, value, expected):
        assert sanitize_filename(value) == expected
        assert sanitize_path_component(value) == expected

    @pytest.mark.parametrize("value", ["My File.JPG", "a/../b", "ok.png", "", "x:y|z", "..", "."])
    def test_idempotent(self, value):
        once = sanitize_filename(value)
        assert sanitize_filename(once) == once
        assert is_sanitized(once)
        lowered = sanitize_path_component(value)
        assert sanitize_path_component(lowered) == lowered


class TestLegacy:
    def test_plain_layout(self):
        key = LegacyKeyGenerator().generate_key(CONTENT_ID, OBJECT_ID)
        assert key == f"{CONTENT_ID}/{OBJECT_ID}"

    def test_with_file_name_and_prefix(self):
        meta = KeyMetadata(file_name="my photo.jpg")
        key = LegacyKeyGenerator(prefix="C").generate_key(CONTENT_ID, OBJECT_ID, meta)
        assert key == f"C/{CONTENT_ID}/{OBJECT_ID}/my_photo.jpg"
        assert shard_of(key) is None


class TestGitLike:
    """Tests for the git-like layout."""

    def test_original_layout(self):
        meta = KeyMetadata(file_name="photo.jpg")
        key = GitLikeKeyGenerator().generate_key(CONTENT_ID, OBJECT_ID, meta)
        assert key == "originals/objects/ab/cdef0123456789abcdef0123456789_photo.jpg"
        assert shard_of(key) == "ab"

    def test_without_metadata(self):
        key = GitLikeKeyGenerator(shard_length=3).generate_key(CONTENT_ID, OBJECT_ID)
        assert key == "originals/objects/abc/def0123456789abcdef0123456789"

    def test_derived_layout(self):
        meta = KeyMetadata(
            file_name="photo.jpg",
            is_original=False,
            derivation_type="Thumbnail",
            variant="256x256",
        )
        key = GitLikeKeyGenerator().generate_key(CONTENT_ID, OBJECT_ID, meta)
        assert key.startswith("derived/thumbnail/256x256/objects/ab/")
        assert key.endswith("_photo.jpg")

    def test_derived_without_variant_uses_default(self):
        meta = KeyMetadata(is_original=False, derivation_type="preview")
        key = GitLikeKeyGenerator().generate_key(CONTENT_ID, OBJECT_ID, meta)
        assert key.startswith("derived/preview/default/objects/ab/")

    def test_invalid_shard_length(self):
        with pytest.raises(ValueError):
            GitLikeKeyGenerator(shard_length=0)

    def test_shard_distribution(self):
        """1000 random object ids spread over at least 10 shards, none above 20%."""
        gen = GitLikeKeyGenerator()
        keys = [gen.generate_key(uuid4(), uuid4()) for _ in range(1000)]
        dist = shard_distribution(keys)
        assert dist.total == 1000
        assert dist.distinct_shards >= 10
        assert dist.max_share <= 0.20


class TestHashed:
    def test_deterministic(self):
        gen = HashedGitLikeKeyGenerator()
        first = gen.generate_key(CONTENT_ID, OBJECT_ID)
        assert first == gen.generate_key(CONTENT_ID, OBJECT_ID)
        assert first != gen.generate_key(CONTENT_ID, uuid4())

    def test_leaf_bounded(self):
        key = HashedGitLikeKeyGenerator(shard_length=2).generate_key(CONTENT_ID, OBJECT_ID)
        shard, leaf = key.split("/")[-2:]
        assert len(shard) == 2
        assert len(leaf) == 14

    def test_shard_length_limit(self):
        with pytest.raises(ValueError):
            HashedGitLikeKeyGenerator(shard_length=16)


class TestTenantAware:
    def test_prefixes_tenant(self):
        meta = KeyMetadata(tenant_id="Acme Corp")
        key = TenantAwareKeyGenerator().generate_key(CONTENT_ID, OBJECT_ID, meta)
        assert key.startswith("tenants/acme_corp/originals/objects/ab/")

    def test_default_tenant(self):
        key = TenantAwareKeyGenerator(default_tenant="shared").generate_key(CONTENT_ID, OBJECT_ID)
        assert key.startswith("tenants/shared/originals/")

    def test_default_tenant_sanitized(self):
        gen = TenantAwareKeyGenerator(default_tenant="Shared Space/..")
        assert gen.default_tenant == "shared_space_.."
        key = gen.generate_key(CONTENT_ID, OBJECT_ID)
        assert key.startswith("tenants/shared_space_../originals/")
        assert TenantAwareKeyGenerator(default_tenant="..").default_tenant == "__"

    def test_wraps_legacy(self):
        gen = TenantAwareKeyGenerator(LegacyKeyGenerator())
        key = gen.generate_key(CONTENT_ID, OBJECT_ID, KeyMetadata(tenant_id="t1"))
        assert key == f"tenants/t1/{CONTENT_ID}/{OBJECT_ID}"


class TestFactory:
    """Tests for presets and create_key_generator."""

    def test_presets(self):
        assert isinstance(recommended_generator(), GitLikeKeyGenerator)
        assert isinstance(multi_tenant_generator(), TenantAwareKeyGenerator)
        assert high_performance_generator().shard_length == 3

    @pytest.mark.parametrize(
        "strategy,expected",
        [
            ("legacy", LegacyKeyGenerator),
            ("git-like", GitLikeKeyGenerator),
            ("GIT_LIKE", GitLikeKeyGenerator),
            ("hashed", HashedGitLikeKeyGenerator),
            ("tenant-aware", TenantAwareKeyGenerator),
            ("high-performance", GitLikeKeyGenerator),
        ],
    )
    def test_strategies(self, strategy, expected):
        assert isinstance(create_key_generator(strategy), expected)

    def test_legacy_prefix_passed_through(self):
        gen = create_key_generator("legacy", legacy_prefix="C")
        assert gen.generate_key(CONTENT_ID, OBJECT_ID).startswith("C/")

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            create_key_generator("random")

    def test_custom(self):
        gen = CustomKeyGenerator(lambda c, o, m: f"custom/{o}")
        assert gen.generate_key(CONTENT_ID, OBJECT_ID) == f"custom/{OBJECT_ID}"
        with pytest.raises(TypeError):
            CustomKeyGenerator("not callable")
