"""Tests for configuration loading."""

import pytest

from swiftfs.common.config import StorageConfig


class TestStorageConfig:
    def test_from_env_loads_all_values(self):
        config = StorageConfig.from_env()
        assert config.region == "GRA1"
        assert config.keyring_path == "/tmp/keyring.json"
        assert config.upload_slots == 3
        assert config.download_slots == 4
        assert config.delete_slots == 8

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SWIFTFS_REGION", raising=False)
        monkeypatch.delenv("SWIFTFS_KEYRING", raising=False)
        monkeypatch.delenv("SWIFTFS_UPLOAD_SLOTS", raising=False)
        monkeypatch.delenv("SWIFTFS_DOWNLOAD_SLOTS", raising=False)
        monkeypatch.delenv("SWIFTFS_DELETE_SLOTS", raising=False)

        config = StorageConfig.from_env()
        assert config.region == ""
        assert config.service_type == "object-store"
        assert config.upload_slots == 5
        assert config.download_slots == 5
        assert config.delete_slots == 10
        assert config.request_timeout == 60.0
        assert config.listing_page_size == 10000
        assert config.download_chunk_size == 1024 * 1024
        assert config.hash_chunk_size == 1024 * 1024

    def test_numeric_overrides(self, monkeypatch):
        monkeypatch.setenv("SWIFTFS_REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("SWIFTFS_LISTING_PAGE_SIZE", "500")
        config = StorageConfig.from_env()
        assert config.request_timeout == 2.5
        assert config.listing_page_size == 500

    def test_max_slots(self):
        assert StorageConfig(upload_slots=2, download_slots=7, delete_slots=3).max_slots == 7

    def test_frozen_dataclass(self):
        config = StorageConfig.from_env()
        with pytest.raises(AttributeError):
            config.region = "modified"
