"""Unit tests for MemoryCacheProvider and ProgressTracker."""

from __future__ import annotations

import pytest

from src.models.pipeline import PipelineKind, RunStatus
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.cache.memory_cache import MemoryCacheProvider


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def cache(self) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=100, ttl=3600)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: MemoryCacheProvider) -> None:
        await cache.set("weather:23.81:90.41:16", {"avgMaxTemp": 31.2})
        assert await cache.get("weather:23.81:90.41:16") == {"avgMaxTemp": 31.2}

    @pytest.mark.asyncio
    async def test_set_overwrites_existing(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "old")
        await cache.set("key1", "new")
        assert await cache.get("key1") == "new"

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        await cache.delete("key1")
        assert await cache.get("key1") is None

    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, cache: MemoryCacheProvider) -> None:
        await cache.delete("nonexistent")

    @pytest.mark.asyncio
    async def test_exists(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        assert await cache.exists("key1") is True
        assert await cache.exists("missing") is False

    @pytest.mark.asyncio
    async def test_zero_ttl_entry_expires_immediately(self, cache: MemoryCacheProvider) -> None:
        await cache.set("short", "value", ttl=0)
        assert await cache.get("short") is None

    @pytest.mark.asyncio
    async def test_lru_eviction(self) -> None:
        cache = MemoryCacheProvider(max_size=2, ttl=3600)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("c", 3)
        assert await cache.get("a") is None
        assert await cache.get("c") == 3


# ======================================================================
# ProgressTracker
# ======================================================================


class TestProgressTracker:
    @pytest.fixture()
    def tracker(self) -> ProgressTracker:
        tracker = ProgressTracker()
        tracker.start("run-1", "user-1", PipelineKind.CROP_SUGGESTION)
        return tracker

    def test_start_registers_initiated_snapshot(self, tracker: ProgressTracker) -> None:
        snapshot = tracker.get_status("run-1")
        assert snapshot is not None
        assert snapshot.status == RunStatus.INITIATED
        assert snapshot.progress == 0
        assert snapshot.user_id == "user-1"

    def test_unknown_run_refused(self, tracker: ProgressTracker) -> None:
        assert tracker.advance("nope", RunStatus.ANALYZING, 10) is None
        assert tracker.get_status("nope") is None

    def test_forward_progress_accepted(self, tracker: ProgressTracker) -> None:
        snapshot = tracker.advance("run-1", RunStatus.ANALYZING, 10, "Analyzing")
        assert snapshot is not None
        assert snapshot.status == RunStatus.ANALYZING
        assert snapshot.progress == 10
        assert snapshot.message == "Analyzing"

    def test_backward_status_refused(self, tracker: ProgressTracker) -> None:
        tracker.advance("run-1", RunStatus.GENERATING_DATA, 40)
        assert tracker.advance("run-1", RunStatus.ANALYZING, 50) is None
        assert tracker.get_status("run-1").status == RunStatus.GENERATING_DATA

    def test_progress_never_decreases(self, tracker: ProgressTracker) -> None:
        tracker.advance("run-1", RunStatus.ANALYZING, 30)
        snapshot = tracker.advance("run-1", RunStatus.ANALYZING, 20)
        assert snapshot is not None
        assert snapshot.progress == 30

    def test_progress_clamped(self, tracker: ProgressTracker) -> None:
        snapshot = tracker.advance("run-1", RunStatus.ANALYZING, 250)
        assert snapshot is not None
        assert snapshot.progress == 100

    def test_completed_forces_full_progress(self, tracker: ProgressTracker) -> None:
        snapshot = tracker.advance("run-1", RunStatus.COMPLETED, 80)
        assert snapshot is not None
        assert snapshot.progress == 100
        assert snapshot.finished_at is not None

    def test_failed_reachable_from_any_stage(self, tracker: ProgressTracker) -> None:
        tracker.advance("run-1", RunStatus.SAVING_TO_DB, 80)
        snapshot = tracker.advance("run-1", RunStatus.FAILED, 0, "boom")
        assert snapshot is not None
        assert snapshot.status == RunStatus.FAILED
        assert snapshot.progress == 80

    def test_terminal_run_refuses_updates(self, tracker: ProgressTracker) -> None:
        tracker.advance("run-1", RunStatus.COMPLETED, 100)
        assert tracker.advance("run-1", RunStatus.FAILED, 0) is None
        assert tracker.advance("run-1", RunStatus.COMPLETED, 100) is None
        assert tracker.get_status("run-1").status == RunStatus.COMPLETED
