"""Tests for KeyValueStore."""

import json

import pytest

from topupshop.errors import StorageError
from topupshop.kv_store import KeyValueStore


class TestGetSet:
    def test_get_missing_returns_none(self, kv):
        assert kv.get("nope") is None

    def test_set_then_get(self, kv):
        kv.set("catalog", [{"id": "hoyo"}])
        assert kv.get("catalog") == [{"id": "hoyo"}]

    def test_last_write_wins(self, kv):
        kv.set("k", 1)
        kv.set("k", 2)
        assert kv.get("k") == 2

    def test_persists_across_instances(self, temp_dir):
        KeyValueStore(temp_dir / "kv.json").set("k", {"a": 1})
        assert KeyValueStore(temp_dir / "kv.json").get("k") == {"a": 1}

    def test_creates_missing_directory(self, temp_dir):
        store = KeyValueStore(temp_dir / "nested" / "dir" / "kv.json")
        store.set("k", "v")
        assert (temp_dir / "nested" / "dir" / "kv.json").exists()

    def test_file_is_plain_json(self, kv):
        kv.set("k", "v")
        with open(kv.path, encoding="utf-8") as f:
            assert json.load(f) == {"k": "v"}


class TestGetByPrefix:
    def test_returns_exactly_matching_values(self, kv):
        for i in (3, 1, 2):
            kv.set(f"order:k{i}", {"n": i})
        kv.set("catalog", [])
        kv.set("orders_backup", {"n": 99})

        values = kv.get_by_prefix("order:")
        assert sorted(v["n"] for v in values) == [1, 2, 3]

    def test_empty_store(self, kv):
        assert kv.get_by_prefix("order:") == []

    def test_keys_with_prefix(self, kv):
        kv.set("order:a", 1)
        kv.set("other", 2)
        assert kv.keys_with_prefix("order:") == ["order:a"]


class TestDeleteMany:
    def test_counts_only_existing_keys(self, kv):
        kv.set("a", 1)
        kv.set("b", 2)
        assert kv.delete_many(["a", "b", "missing"]) == 2
        assert kv.get("a") is None
        assert kv.get("b") is None

    def test_duplicate_keys_counted_once(self, kv):
        kv.set("a", 1)
        assert kv.delete_many(["a", "a"]) == 1

    def test_leaves_other_keys(self, kv):
        kv.set("a", 1)
        kv.set("keep", 2)
        kv.delete_many(["a"])
        assert kv.get("keep") == 2

    def test_nothing_to_delete(self, kv):
        assert kv.delete_many([]) == 0


class TestErrors:
    def test_corrupt_file_raises_storage_error(self, kv):
        kv.path.parent.mkdir(parents=True, exist_ok=True)
        kv.path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            kv.get("k")

    def test_non_object_file_raises_storage_error(self, kv):
        kv.path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StorageError):
            kv.get_by_prefix("")

    def test_non_serializable_value_is_not_written(self, kv):
        kv.set("k", "before")
        with pytest.raises(StorageError):
            kv.set("k", object())
        assert kv.get("k") == "before"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_number_is_not_written(self, kv, value):
        kv.set("k", {"price": 1})
        with pytest.raises(StorageError, match="write"):
            kv.set("k", {"price": value})
        assert kv.get("k") == {"price": 1}

    def test_unreachable_directory_raises_storage_error(self, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("x")
        store = KeyValueStore(blocker / "kv.json")
        with pytest.raises(StorageError):
            store.set("k", "v")
