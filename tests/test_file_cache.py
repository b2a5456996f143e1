"""Tests for the JSON file cache."""

import json
import os
import time
from unittest.mock import patch

import pytest

from shopcache.cache import CacheReadError, CacheStatus, CacheWriteError, InvalidCacheKeyError, TtlPolicy
from shopcache.file_cache import FileCache

from conftest import WEEK


def _age(path, seconds):
    old = time.time() - seconds
    os.utime(path, (old, old))


class TestFreshness:
    def test_missing_entry_is_stale(self, file_cache):
        assert file_cache.status("products/1") is CacheStatus.MISSING
        assert file_cache.is_stale("products/1") is True

    def test_fresh_write_is_not_stale(self, file_cache):
        file_cache.set("products/1", {"id": 1})

        assert file_cache.status("products/1") is CacheStatus.FRESH
        assert file_cache.is_stale("products/1") is False

    def test_entry_older_than_window_is_stale(self, file_cache):
        file_cache.set("products/1", {"id": 1})
        _age(file_cache.path_for("products/1"), WEEK + 60)

        assert file_cache.status("products/1") is CacheStatus.EXPIRED
        assert file_cache.is_stale("products/1") is True

    def test_get_hides_expired_entry_but_read_returns_it(self, file_cache):
        file_cache.set("shop", {"name": "Knit Shop"})
        _age(file_cache.path_for("shop"), WEEK + 60)

        assert file_cache.get("shop") is None
        assert file_cache.read("shop") == {"name": "Knit Shop"}

    def test_overwrite_refreshes_entry(self, file_cache):
        file_cache.set("shop", {"name": "old"})
        _age(file_cache.path_for("shop"), WEEK + 60)

        file_cache.set("shop", {"name": "new"})

        assert file_cache.get("shop") == {"name": "new"}

    def test_jitter_never_expires_brand_new_entry(self, tmp_path):
        cache = FileCache(tmp_path, ttl=3600, ttl_jitter=360)
        cache.set("shop", {})

        assert all(not cache.is_stale("shop") for _ in range(20))

    def test_jitter_larger_than_ttl_never_goes_negative(self):
        policy = TtlPolicy(ttl=10, ttl_jitter=100)

        with patch("shopcache.cache.random.uniform", return_value=-100):
            assert policy.effective_ttl() == 0
            assert policy.status_for_age(0) is CacheStatus.FRESH


class TestReadWrite:
    def test_round_trip(self, file_cache):
        value = {
            "id": 123,
            "title": "Blue Hat",
            "tags": ["hat", "wool"],
            "priceRange": {"minVariantPrice": {"amount": "12.00", "currencyCode": "GBP"}},
            "description": "Strickmütze",
        }

        file_cache.set("products/123", value)

        assert file_cache.read("products/123") == value
        assert file_cache.get("products/123") == value

    def test_entity_files_live_under_data_directory(self, file_cache):
        file_cache.set("products", {"results": []})
        file_cache.set("products/123", {"id": 123})
        file_cache.set("reviews/123", {"listingId": 123})

        assert (file_cache.root / "products.json").is_file()
        assert (file_cache.root / "products" / "123.json").is_file()
        assert json.loads((file_cache.root / "reviews" / "123.json").read_text()) == {"listingId": 123}

    def test_dotted_key_keeps_full_name(self, file_cache):
        assert file_cache.path_for("patterns/v1.5").name == "v1.5.json"

    def test_no_temp_files_left_behind(self, file_cache):
        file_cache.set("products/1", {"id": 1})

        assert [p.name for p in (file_cache.root / "products").iterdir()] == ["1.json"]

    def test_read_missing_returns_none(self, file_cache):
        assert file_cache.read("products/999") is None

    def test_corrupt_entry_raises(self, file_cache):
        path = file_cache.path_for("products/1")
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        with pytest.raises(CacheReadError):
            file_cache.read("products/1")

    def test_write_failure_propagates(self, tmp_path):
        blocker = tmp_path / "data"
        blocker.write_text("a file where the directory should be")
        cache = FileCache(blocker, ttl=WEEK)

        with pytest.raises(CacheWriteError) as exc_info:
            cache.set("products/1", {"id": 1})
        assert exc_info.value.key == "products/1"

    def test_unserializable_value_raises(self, file_cache):
        with pytest.raises(CacheWriteError):
            file_cache.set("shop", {"when": object()})
        assert file_cache.read("shop") is None


class TestKeys:
    @pytest.mark.parametrize("key", ["../secret", "products/..", "products//1", "products/a b", "", "products/1\n"])
    def test_invalid_keys_rejected(self, file_cache, key):
        with pytest.raises(InvalidCacheKeyError):
            file_cache.path_for(key)


class TestMaintenance:
    def test_clear_expired_only_removes_old_entries(self, file_cache):
        file_cache.set("products/1", {"id": 1})
        file_cache.set("products/2", {"id": 2})
        _age(file_cache.path_for("products/1"), WEEK + 60)

        assert file_cache.clear_expired() == 1
        assert file_cache.read("products/1") is None
        assert file_cache.read("products/2") == {"id": 2}

    def test_delete_and_clear_all(self, file_cache):
        file_cache.set("shop", {})
        file_cache.set("products/1", {})

        file_cache.delete("shop")
        file_cache.delete("shop")
        assert file_cache.status("shop") is CacheStatus.MISSING

        file_cache.clear_all()
        assert file_cache.status("products/1") is CacheStatus.MISSING
