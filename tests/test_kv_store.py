"""Tests for KV store: Set/Get, Get without set, Set twice, separate instances, concurrent access."""

import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from kv_store import KVStore


class TestSetThenGet:
    """Set then Get."""

    def test_set_then_get(self, store):
        store.set(b"foo", b"bar")
        assert store.get(b"foo") == b"bar"

    def test_value_copied_on_set(self, store):
        value = bytearray(b"abc")
        store.set(b"k", value)
        value[0] = ord("z")
        assert store.get(b"k") == b"abc"


class TestGetWithoutSetting:
    """Get without setting."""

    def test_get_missing_key(self, store):
        assert store.get(b"nonexistent") is None
        assert len(store) == 0


class TestSetThenSetThenGet:
    """Set then Set (same key) then Get."""

    def test_set_twice_same_key(self, store):
        store.set(b"k", b"v1")
        assert store.get(b"k") == b"v1"
        store.set(b"k", b"v2")
        assert store.get(b"k") == b"v2"
        assert len(store) == 1


class TestSeparateStores:
    """Stores are independent objects, no shared module state."""

    def test_two_stores_do_not_share_data(self):
        a, b = KVStore(), KVStore()
        a.set(b"k", b"a")
        assert b.get(b"k") is None


class TestConcurrentAccess:
    """Many threads writing distinct and overlapping keys."""

    @pytest.mark.timeout(30)
    def test_concurrent_set_same_key(self, store):
        results: list[Exception | None] = []

        def setter(thread_id: int, n: int):
            try:
                for i in range(n):
                    store.set(b"shared", f"t{thread_id}_{i}".encode())
                    store.set(f"own_{thread_id}_{i}".encode(), b"x")
                results.append(None)
            except Exception as e:
                results.append(e)

        threads = [threading.Thread(target=setter, args=(tid, 200)) for tid in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        for r in results:
            assert r is None, r
        assert store.get(b"shared").startswith(b"t")
        assert len(store) == 1 + 4 * 200
