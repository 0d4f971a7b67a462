# tests/test_session_storage.py

"""Tests for the key-value storage adapters."""

import shutil
import tempfile
import unittest
from pathlib import Path

from tweet_harvest.models.errors import StorageQuotaExceededError
from tweet_harvest.storage.session_storage import (
    FileStorage,
    KeyValueStorage,
    MemoryStorage,
    byte_size,
)


class _StorageContract:
    """Behaviour shared by every storage adapter."""

    def make(self, quota_bytes: int | None = None) -> KeyValueStorage:
        raise NotImplementedError

    def test_read_missing(self) -> None:
        self.assertIsNone(self.make().read("nope"))

    def test_write_read_remove(self) -> None:
        storage = self.make()
        storage.write("k", "välue")
        self.assertEqual(storage.read("k"), "välue")
        storage.remove("k")
        self.assertIsNone(storage.read("k"))

    def test_remove_missing_is_noop(self) -> None:
        self.make().remove("never-written")

    def test_used_bytes(self) -> None:
        storage = self.make()
        storage.write("a", "x" * 10)
        storage.write("b", "é")
        self.assertEqual(storage.used_bytes(), 12)

    def test_quota_enforced(self) -> None:
        storage = self.make(quota_bytes=10)
        storage.write("a", "x" * 8)
        with self.assertRaises(StorageQuotaExceededError):
            storage.write("b", "x" * 5)
        self.assertIsNone(storage.read("b"))

    def test_overwrite_counts_replaced_value(self) -> None:
        storage = self.make(quota_bytes=10)
        storage.write("a", "x" * 8)
        storage.write("a", "y" * 10)
        self.assertEqual(storage.read("a"), "y" * 10)


class TestMemoryStorage(_StorageContract, unittest.TestCase):

    def make(self, quota_bytes: int | None = None) -> KeyValueStorage:
        return MemoryStorage(quota_bytes)


class TestFileStorage(_StorageContract, unittest.TestCase):

    def setUp(self) -> None:
        self.tmp = Path(tempfile.mkdtemp())

    def tearDown(self) -> None:
        shutil.rmtree(self.tmp, ignore_errors=True)

    def make(self, quota_bytes: int | None = None) -> KeyValueStorage:
        return FileStorage(self.tmp / "cache", quota_bytes)

    def test_keys_are_sanitised(self) -> None:
        storage = self.make()
        storage.write("tweet_harvest:cache/v2", "{}")
        files = [p.name for p in (self.tmp / "cache").iterdir()]
        self.assertEqual(files, ["tweet_harvest_cache_v2.json"])

    def test_survives_new_instance(self) -> None:
        self.make().write("k", "persisted")
        self.assertEqual(self.make().read("k"), "persisted")


class TestByteSize(unittest.TestCase):

    def test_utf8(self) -> None:
        self.assertEqual(byte_size("abc"), 3)
        self.assertEqual(byte_size("ü"), 2)


if __name__ == "__main__":
    unittest.main()
