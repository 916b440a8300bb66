"""
Tests for the queue storage backends.
"""

import pytest

from wts_forms.core.storage import (
    DatabaseStorage,
    LocalStorage,
    MemoryStorage,
    QuotaExceededError,
    StorageError,
)


@pytest.fixture(params=["memory", "database"])
def storage_factory(request, test_engine):
    def make(quota_bytes=None):
        if request.param == "memory":
            return MemoryStorage(quota_bytes=quota_bytes)
        return DatabaseStorage(test_engine, quota_bytes=quota_bytes)

    return make


class TestStorageContract:
    def test_backends_implement_protocol(self, test_engine):
        assert isinstance(MemoryStorage(), LocalStorage)
        assert isinstance(DatabaseStorage(test_engine), LocalStorage)

    def test_missing_key_is_none(self, storage_factory):
        assert storage_factory().get_item("pendingSubmissions") is None

    def test_set_get_overwrite_remove(self, storage_factory):
        storage = storage_factory()

        storage.set_item("pendingSubmissions", "[1]")
        assert storage.get_item("pendingSubmissions") == "[1]"

        storage.set_item("pendingSubmissions", "[1, 2]")
        assert storage.get_item("pendingSubmissions") == "[1, 2]"

        storage.remove_item("pendingSubmissions")
        assert storage.get_item("pendingSubmissions") is None

    def test_remove_missing_key_is_noop(self, storage_factory):
        storage_factory().remove_item("nothing-here")


class TestQuota:
    def test_write_over_quota_raises(self, storage_factory):
        storage = storage_factory(quota_bytes=20)

        with pytest.raises(QuotaExceededError):
            storage.set_item("k", "x" * 20)

        assert storage.get_item("k") is None

    def test_quota_counts_other_keys(self, storage_factory):
        storage = storage_factory(quota_bytes=20)
        storage.set_item("a", "x" * 10)  # 11 bytes

        with pytest.raises(QuotaExceededError):
            storage.set_item("b", "x" * 9)  # 10 more

        storage.set_item("b", "x" * 8)
        assert storage.get_item("b") == "x" * 8

    def test_overwrite_does_not_count_old_value(self, storage_factory):
        storage = storage_factory(quota_bytes=12)
        storage.set_item("k", "x" * 11)

        storage.set_item("k", "y" * 11)

        assert storage.get_item("k") == "y" * 11

    def test_quota_error_is_storage_error(self):
        assert issubclass(QuotaExceededError, StorageError)


class TestMemoryStorage:
    def test_keys(self):
        storage = MemoryStorage()
        storage.set_item("b", "1")
        storage.set_item("a", "2")

        assert storage.keys() == ["a", "b"]
