"""Tests for storage options and shared models."""

import pytest

from image_storage_engine.core.exceptions import ConfigurationError
from image_storage_engine.core.models import (
    DEFAULT_VARIANT_LABEL,
    MIN_PART_SIZE,
    SizeOption,
    StorageOptions,
    StoredFile,
    UploadResult,
    VariantSpec,
    load_options,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("S3_BUCKET", "S3_PATH", "CDN_HOST"):
        monkeypatch.delenv(name, raising=False)


class TestStorageOptions:
    """Tests for StorageOptions defaults and aliases."""

    def test_defaults(self):
        options = StorageOptions(bucket="b")
        assert options.acl == "public-read"
        assert options.rotate is True
        assert options.grayscale is False
        assert options.with_metadata is False
        assert options.webp is False
        assert options.fit == "outside"
        assert options.part_size == MIN_PART_SIZE
        assert options.tap_buffer == 16
        assert len(options.sizes) == 1
        assert options.sizes[0].name is None
        assert options.sizes[0].width is None

    def test_camel_case_aliases(self):
        options = StorageOptions(bucket="b", webP=True, withMetadata=True, s3Path="up")
        assert options.webp is True
        assert options.with_metadata is True
        assert options.s3_path == "up"

    def test_size_option_webp_alias(self):
        size = SizeOption(name="thumb", width=100, webP=True)
        assert size.webp is True
        assert size.height is None
        assert size.options.position == "centre"


class TestLoadOptions:
    """Tests for load_options merging and validation."""

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", "env-bucket")
        monkeypatch.setenv("S3_PATH", "env-path")
        options = load_options(bucket="explicit", s3_path="uploads")
        assert options.bucket == "explicit"
        assert options.s3_path == "uploads"

    def test_environment_fallbacks(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", "env-bucket")
        monkeypatch.setenv("S3_PATH", "env-path")
        monkeypatch.setenv("CDN_HOST", "https://cdn.example.com")
        options = load_options()
        assert options.bucket == "env-bucket"
        assert options.s3_path == "env-path"
        assert options.cdn == "https://cdn.example.com"

    def test_s3_path_alias_is_honoured(self, monkeypatch):
        monkeypatch.setenv("S3_PATH", "env-path")
        assert load_options(bucket="b", s3Path="camel").s3_path == "camel"

    def test_none_values_are_ignored(self):
        options = load_options(bucket="b", fit=None, acl=None)
        assert options.fit == "outside"
        assert options.acl == "public-read"

    def test_missing_bucket(self):
        with pytest.raises(ConfigurationError, match="bucket"):
            load_options()

    def test_invalid_fit(self):
        with pytest.raises(ConfigurationError):
            load_options(bucket="b", fit="stretch")

    def test_sizes_must_be_a_list(self):
        with pytest.raises(ConfigurationError, match="list"):
            load_options(bucket="b", sizes="thumb")

    def test_size_dimensions_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            load_options(bucket="b", sizes=[{"name": "thumb", "width": 0}])

    def test_empty_acl(self):
        with pytest.raises(ConfigurationError):
            load_options(bucket="b", acl="")

    def test_part_size_minimum(self):
        with pytest.raises(ConfigurationError):
            load_options(bucket="b", part_size=1024)

    def test_empty_sizes_allowed(self):
        assert load_options(bucket="b", sizes=[]).sizes == []

    def test_sizes_from_dicts(self):
        options = load_options(
            bucket="b",
            sizes=[{}, {"name": "thumb", "width": 100, "height": 100, "options": {"fit": "cover"}}],
        )
        assert options.sizes[0].name is None
        assert options.sizes[1].options.fit == "cover"


class TestResultModels:
    """Tests for VariantSpec and result models."""

    def test_variant_label_defaults_to_original(self):
        assert VariantSpec().variant_label == DEFAULT_VARIANT_LABEL
        assert VariantSpec(label="").variant_label == DEFAULT_VARIANT_LABEL
        assert VariantSpec(label="thumb").variant_label == "thumb"

    def test_upload_result_serializes(self):
        result = UploadResult(
            files=[StoredFile(name="a.jpg", variant_label="original", url="u", content_hash="h")]
        )
        assert result.model_dump()["files"][0]["name"] == "a.jpg"
        assert UploadResult().files == []
