"""
Tests for the cohort percentage store.

These tests verify range, stability across calls and restarts, first-write
atomicity under concurrency, and replacement of corrupt persisted values.
"""

import logging
import math
import threading

import numpy as np
import pytest

from flagyard.config.constants import DEFAULT_COHORT_KEY
from flagyard.errors import StoreError
from flagyard.store.backends import DuckDBBackend, JsonFileBackend, MemoryBackend
from flagyard.store.cohort import CohortPercentageStore, validate_cohort_value


class GatedMemoryBackend(MemoryBackend):
    """Holds every get() until all expected readers have arrived."""

    def __init__(self, initial, parties):
        super().__init__(initial)
        self.barrier = threading.Barrier(parties, timeout=5)

    def get(self, key):
        value = super().get(key)
        self.barrier.wait()
        return value


class GatedJsonFileBackend(JsonFileBackend):
    """JSON backend whose get() waits for the other readers on the same path."""

    def __init__(self, path, barrier):
        super().__init__(path)
        self.barrier = barrier

    def get(self, key):
        value = super().get(key)
        self.barrier.wait()
        return value


def run_threads(count, target):
    results = []
    lock = threading.Lock()

    def worker():
        value = target()
        with lock:
            results.append(value)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestValidateCohortValue:

    @pytest.mark.parametrize("value", [0, 0.0, 7.3, 99.999])
    def test_valid(self, value):
        assert validate_cohort_value(value) == float(value)

    @pytest.mark.parametrize("value", [None, True, "7.3", -0.1, 100.0, 250, math.nan, math.inf, [1]])
    def test_invalid(self, value):
        assert validate_cohort_value(value) is None


class TestCohortPercentage:
    """Tests for cohort_percentage()."""

    def test_in_range(self, rng):
        store = CohortPercentageStore(MemoryBackend(), rng=rng)
        value = store.cohort_percentage()
        assert 0.0 <= value < 100.0

    def test_stable_across_calls(self, rng):
        store = CohortPercentageStore(MemoryBackend(), rng=rng)
        first = store.cohort_percentage()
        assert all(store.cohort_percentage() == first for _ in range(100))

    def test_persisted_under_key(self, rng):
        backend = MemoryBackend()
        store = CohortPercentageStore(backend, rng=rng)
        value = store.cohort_percentage()
        assert backend.get(DEFAULT_COHORT_KEY) == value

    def test_existing_value_is_loaded(self):
        store = CohortPercentageStore(MemoryBackend({DEFAULT_COHORT_KEY: 7.3}))
        assert store.cohort_percentage() == 7.3

    def test_keys_are_independent(self, rng):
        backend = MemoryBackend({"a": 10.0})
        store = CohortPercentageStore(backend, rng=rng)
        assert store.cohort_percentage("a") == 10.0
        store.cohort_percentage("b")
        assert set(backend.keys()) == {"a", "b"}

    def test_survives_restart_json(self, tmp_path):
        path = tmp_path / "store.json"
        first = CohortPercentageStore(JsonFileBackend(path)).cohort_percentage()

        # New backend and store instances, as in a new process
        second = CohortPercentageStore(JsonFileBackend(path)).cohort_percentage()
        assert second == first

    def test_survives_restart_duckdb(self, tmp_path):
        path = tmp_path / "store.duckdb"
        backend = DuckDBBackend(path)
        first = CohortPercentageStore(backend).cohort_percentage()
        backend.close()

        backend = DuckDBBackend(path)
        try:
            assert CohortPercentageStore(backend).cohort_percentage() == first
        finally:
            backend.close()

    def test_upper_bound_never_returned(self):
        """A draw rounding up to 100.0 is clamped below the bound."""
        class MaxRng:
            def uniform(self, low, high):
                return high

        store = CohortPercentageStore(MemoryBackend(), rng=MaxRng())
        value = store.cohort_percentage()
        assert value < 100.0
        assert value == np.nextafter(100.0, 0.0)

    def test_seeded_rng_is_reproducible(self):
        a = CohortPercentageStore(MemoryBackend(), rng=np.random.default_rng(7)).cohort_percentage()
        b = CohortPercentageStore(MemoryBackend(), rng=np.random.default_rng(7)).cohort_percentage()
        assert a == b

    def test_created_is_logged(self, rng, caplog):
        store = CohortPercentageStore(MemoryBackend(), rng=rng)
        with caplog.at_level(logging.INFO, logger="flagyard"):
            store.cohort_percentage()
        assert "[COHORT:CREATED]" in caplog.text


class TestCorruptValues:
    """A persisted value outside [0, 100) is replaced with a fresh draw."""

    @pytest.mark.parametrize("corrupt", ["abc", 150.0, -3, True, {"x": 1}])
    def test_replaced(self, rng, corrupt, caplog):
        backend = MemoryBackend({DEFAULT_COHORT_KEY: corrupt})
        store = CohortPercentageStore(backend, rng=rng)

        with caplog.at_level(logging.WARNING, logger="flagyard"):
            value = store.cohort_percentage()

        assert 0.0 <= value < 100.0
        assert backend.get(DEFAULT_COHORT_KEY) == value
        assert "[COHORT:REPLACED]" in caplog.text

    def test_replacement_is_stable(self, rng):
        backend = MemoryBackend({DEFAULT_COHORT_KEY: "garbage"})
        store = CohortPercentageStore(backend, rng=rng)
        first = store.cohort_percentage()
        assert CohortPercentageStore(backend).cohort_percentage() == first

    def test_concurrent_repair_has_one_winner(self, caplog):
        """Two stores reading the same corrupt value agree on one replacement."""
        backend = GatedMemoryBackend({DEFAULT_COHORT_KEY: "garbage"}, parties=2)

        with caplog.at_level(logging.INFO, logger="flagyard"):
            results = run_threads(2, lambda: CohortPercentageStore(backend).cohort_percentage())

        assert len(results) == 2
        assert len(set(results)) == 1
        assert MemoryBackend.get(backend, DEFAULT_COHORT_KEY) == results[0]
        replaced = [r for r in caplog.records if "[COHORT:REPLACED]" in r.getMessage()]
        assert len(replaced) == 1

    def test_concurrent_repair_json_instances(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileBackend(path).set(DEFAULT_COHORT_KEY, 250.0)
        barrier = threading.Barrier(4, timeout=5)

        def repair():
            return CohortPercentageStore(GatedJsonFileBackend(path, barrier)).cohort_percentage()

        results = run_threads(4, repair)

        assert len(results) == 4
        assert len(set(results)) == 1
        assert JsonFileBackend(path).get(DEFAULT_COHORT_KEY) == results[0]

    def test_repair_adopts_value_stored_by_another_writer(self, rng, caplog):
        """A lost replace_if() returns the winner's value, which is cached."""
        class RacedBackend(MemoryBackend):
            def replace_if(self, key, expected, value):
                super().set(key, 42.0)
                return super().replace_if(key, expected, value)

        backend = RacedBackend({DEFAULT_COHORT_KEY: "garbage"})
        store = CohortPercentageStore(backend, rng=rng)

        with caplog.at_level(logging.INFO, logger="flagyard"):
            assert store.cohort_percentage() == 42.0
        assert store.cohort_percentage() == 42.0
        assert "[COHORT:REPLACED]" not in caplog.text
        assert "[COHORT:LOADED]" in caplog.text

    def test_repair_gives_up_when_value_stays_invalid(self, rng):
        class StubbornBackend(MemoryBackend):
            def replace_if(self, key, expected, value):
                return -1.0

        store = CohortPercentageStore(StubbornBackend({DEFAULT_COHORT_KEY: "garbage"}), rng=rng)
        with pytest.raises(StoreError, match="still invalid after 3 replacement attempts"):
            store.cohort_percentage()

    def test_corrupt_duckdb_text_raises(self, tmp_path):
        backend = DuckDBBackend(tmp_path / "store.duckdb")
        try:
            backend.conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?)",
                [DEFAULT_COHORT_KEY, "not json"],
            )
            with pytest.raises(StoreError, match="is not valid JSON"):
                CohortPercentageStore(backend).cohort_percentage()
        finally:
            backend.close()


class TestConcurrency:
    """First access from many threads creates exactly one value."""

    def test_single_store_many_threads(self):
        backend = MemoryBackend()
        store = CohortPercentageStore(backend)
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            value = store.cohort_percentage()
            with lock:
                results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 1
        assert backend.get(DEFAULT_COHORT_KEY) == results[0]

    def test_many_stores_shared_backend(self, tmp_path):
        """Stores in different threads sharing one backend agree on the value."""
        backend = JsonFileBackend(tmp_path / "shared.json")
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker():
            store = CohortPercentageStore(backend)
            barrier.wait()
            value = store.cohort_percentage()
            with lock:
                results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 1

    def test_separate_json_instances_same_path(self, tmp_path):
        """Backend instances opened on one path serialize their writes."""
        path = tmp_path / "shared.json"
        barrier = threading.Barrier(8, timeout=5)

        def first_access():
            return CohortPercentageStore(GatedJsonFileBackend(path, barrier)).cohort_percentage()

        results = run_threads(8, first_access)

        assert len(results) == 8
        assert len(set(results)) == 1
        assert JsonFileBackend(path).get(DEFAULT_COHORT_KEY) == results[0]


class TestPeek:

    def test_peek_does_not_create(self):
        backend = MemoryBackend()
        store = CohortPercentageStore(backend)
        assert store.peek() is None
        assert backend.get(DEFAULT_COHORT_KEY) is None

    def test_peek_after_create(self, rng):
        store = CohortPercentageStore(MemoryBackend(), rng=rng)
        value = store.cohort_percentage()
        assert store.peek() == value
