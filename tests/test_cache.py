"""Tests for score cache stores."""

import pytest

from vetr_mcp.scoring.cache import DiskScoreCache, MemoryScoreCache, create_score_cache
from vetr_mcp.scoring.models import COMPONENT_KEYS, CacheEntry, ScoreResult

from conftest import NOW_MS


def _entry(key: str, expires_in_ms: int = 60_000) -> CacheEntry:
    result = ScoreResult(
        overall_score=50,
        components={k: 50 for k in COMPONENT_KEYS},
        computed_at=NOW_MS,
    )
    return CacheEntry(key=key, value=result, expires_at=NOW_MS + expires_in_ms)


@pytest.fixture(params=["memory", "disk"])
def store(request, tmp_path):
    """Each store implementation."""
    if request.param == "memory":
        yield MemoryScoreCache()
    else:
        disk = DiskScoreCache(str(tmp_path / "scores"))
        yield disk
        disk.close()


class TestScoreCacheStore:
    """Behaviour shared by every store."""

    def test_get_missing(self, store) -> None:
        """Test unknown keys read as None."""
        assert store.get("ACME", NOW_MS) is None

    def test_set_then_get(self, store) -> None:
        """Test a stored entry is returned before expiry."""
        entry = _entry("ACME")
        store.set(entry, ttl=60)
        assert store.get("ACME", NOW_MS + 59_999) == entry

    def test_expired_entry_evicted(self, store) -> None:
        """Test reading at or after expires_at evicts the entry."""
        store.set(_entry("ACME"), ttl=60)
        assert store.get("ACME", NOW_MS + 60_000) is None
        assert store.keys() == []

    def test_set_replaces(self, store) -> None:
        """Test a second set for the same key replaces the first."""
        store.set(_entry("ACME", 1_000), ttl=60)
        store.set(_entry("ACME", 120_000), ttl=120)
        assert store.get("ACME", NOW_MS + 5_000) is not None

    def test_delete(self, store) -> None:
        """Test delete reports whether the key existed."""
        store.set(_entry("ACME"), ttl=60)
        assert store.delete("ACME") is True
        assert store.delete("ACME") is False

    def test_clear_and_keys(self, store) -> None:
        """Test keys are listed sorted and clear empties the store."""
        store.set(_entry("BETA"), ttl=60)
        store.set(_entry("ACME"), ttl=60)
        assert store.keys() == ["ACME", "BETA"]

        store.clear()
        assert store.keys() == []


class TestCreateScoreCache:
    """Tests for backend selection."""

    def test_default_memory(self, monkeypatch) -> None:
        """Test memory is the default backend."""
        monkeypatch.delenv("SCORE_CACHE_BACKEND", raising=False)
        assert isinstance(create_score_cache(), MemoryScoreCache)

    def test_env_selects_disk(self, monkeypatch, tmp_path) -> None:
        """Test SCORE_CACHE_BACKEND=disk builds a disk store."""
        monkeypatch.setenv("SCORE_CACHE_BACKEND", "Disk")
        store = create_score_cache(cache_dir=str(tmp_path / "scores"))
        try:
            assert isinstance(store, DiskScoreCache)
        finally:
            store.close()

    def test_unknown_backend(self) -> None:
        """Test unsupported backends are rejected."""
        with pytest.raises(ValueError, match="Invalid cache backend"):
            create_score_cache("redis")
