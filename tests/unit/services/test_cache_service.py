"""
Unit tests for the time-stamped cache over the shared store.
"""

import json
from typing import List

import pytest

from acrostic_core.config import CacheConfig
from acrostic_core.constants import CacheType
from acrostic_core.schemas import FileMetadata
from acrostic_core.services import CacheService, cache_key
from acrostic_core.stores import InMemoryKeyValueStore
from tests.fixtures.builders import FakeClock

DAY = 24 * 60 * 60


@pytest.fixture
def cache(shared_store, clock):
    return CacheService(shared_store, CacheConfig(), clock=clock)


class TestCacheKey:
    def test_keys(self):
        assert cache_key(CacheType.TOKEN) == "acrostic_tokens_cache"
        assert cache_key(CacheType.DATABASE, "T1") == "acrostic_database_metadata_cache_T1"
        assert cache_key(CacheType.TASK, "T1_D1") == "acrostic_tasks_cache_T1_D1"


class TestStoreAndRetrieve:
    def test_entry_format(self, cache, shared_store, clock):
        cache.store([{"id": "D1"}], CacheType.DATABASE, "T1")

        entry = json.loads(shared_store.get("acrostic_database_metadata_cache_T1"))

        assert entry == {"timestamp": clock.now, "data": [{"id": "D1"}]}

    def test_fresh_entry_is_returned(self, cache, clock):
        cache.store({"a": 1}, CacheType.WIDGET)
        clock.advance(DAY - 1)

        assert cache.retrieve(CacheType.WIDGET) == {"a": 1}

    def test_expired_entry_is_a_miss(self, cache, clock):
        cache.store({"a": 1}, CacheType.WIDGET)
        clock.advance(DAY + 1)

        assert cache.retrieve(CacheType.WIDGET) is None

    def test_custom_max_age(self, cache, clock):
        cache.store({"a": 1}, CacheType.WIDGET)
        clock.advance(61)

        assert cache.retrieve(CacheType.WIDGET, max_age=60) is None
        assert cache.retrieve(CacheType.WIDGET, max_age=62) == {"a": 1}

    def test_missing_entry(self, cache):
        assert cache.retrieve(CacheType.TOKEN) is None

    def test_undecodable_entry_is_a_miss(self, cache, shared_store):
        shared_store.set(cache_key(CacheType.TOKEN), "{not json")

        assert cache.retrieve(CacheType.TOKEN) is None

    def test_entry_without_timestamp_is_a_miss(self, cache, shared_store):
        shared_store.set(cache_key(CacheType.TOKEN), json.dumps({"data": []}))

        assert cache.retrieve(CacheType.TOKEN) is None

    def test_payload_is_validated_against_model(self, cache):
        files = [{"id": "D1", "title": "Tasks", "kind": "database", "token_id": "T1"}]
        cache.store(files, CacheType.FILE)

        result = cache.retrieve(CacheType.FILE, model=List[FileMetadata])

        assert isinstance(result[0], FileMetadata)
        assert result[0].title == "Tasks"

    def test_invalid_payload_is_a_miss(self, cache):
        cache.store([{"id": "D1", "kind": "spreadsheet"}], CacheType.FILE)

        assert cache.retrieve(CacheType.FILE, model=List[FileMetadata]) is None


class TestAgeAndInvalidation:
    def test_entry_age(self, cache, clock):
        cache.store([], CacheType.TASK, "T1_D1")
        clock.advance(120)

        assert cache.entry_age(CacheType.TASK, "T1_D1") == 120
        assert cache.entry_age(CacheType.TASK, "T1_D2") is None

    def test_invalidate(self, cache):
        cache.store([], CacheType.TOKEN)
        cache.invalidate(CacheType.TOKEN)

        assert cache.retrieve(CacheType.TOKEN) is None


class TestCleanup:
    def test_removes_old_and_corrupt_entries(self, cache, shared_store, clock):
        cache.store([], CacheType.TOKEN)
        clock.advance(8 * DAY)
        cache.store([], CacheType.DATABASE, "T1")
        shared_store.set("acrostic_widget_data_cache", "garbage")
        shared_store.set("tokens", [])

        removed = cache.cleanup_expired_caches()

        assert sorted(removed) == ["acrostic_tokens_cache", "acrostic_widget_data_cache"]
        assert shared_store.get("acrostic_database_metadata_cache_T1") is not None
        assert shared_store.get("tokens") == []

    def test_custom_window(self):
        clock = FakeClock()
        cache = CacheService(InMemoryKeyValueStore(), clock=clock)
        cache.store([], CacheType.TOKEN)
        clock.advance(10)

        assert cache.cleanup_expired_caches(older_than=5) == ["acrostic_tokens_cache"]
