"""Tests for full vs. incremental sync resolution."""
from datetime import datetime, timedelta, timezone

from fieldsync.models.schemas.jobber import SyncMode
from fieldsync.services.sync.mode import SYNC_BUFFER, determine_sync_mode

LAST_SYNC = datetime(2025, 5, 30, 8, 0, tzinfo=timezone.utc)


class TestDetermineSyncMode:
    async def test_no_status_row_means_full(self, store):
        config = await determine_sync_mode(store, "residential")

        assert config.mode == SyncMode.FULL
        assert config.sync_since is None

    async def test_force_full_without_history_is_full(self, store):
        config = await determine_sync_mode(store, "residential", force_full=True)

        assert config.mode == SyncMode.FULL

    async def test_force_full_overrides_previous_success(self, store):
        store.statuses["residential"] = {"id": "residential", "last_sync_at": LAST_SYNC, "last_sync_status": "success"}

        config = await determine_sync_mode(store, "residential", force_full=True)

        assert config.mode == SyncMode.FULL

    async def test_previous_failure_means_full(self, store):
        store.statuses["residential"] = {"id": "residential", "last_sync_at": LAST_SYNC, "last_sync_status": "failed"}

        config = await determine_sync_mode(store, "residential")

        assert config.mode == SyncMode.FULL

    async def test_in_progress_means_full(self, store):
        store.statuses["residential"] = {"id": "residential", "last_sync_at": LAST_SYNC, "last_sync_status": "in_progress"}

        config = await determine_sync_mode(store, "residential")

        assert config.mode == SyncMode.FULL

    async def test_success_without_timestamp_means_full(self, store):
        store.statuses["residential"] = {"id": "residential", "last_sync_status": "success"}

        config = await determine_sync_mode(store, "residential")

        assert config.mode == SyncMode.FULL

    async def test_previous_success_means_incremental_with_buffer(self, store):
        store.statuses["residential"] = {"id": "residential", "last_sync_at": LAST_SYNC, "last_sync_status": "success"}

        config = await determine_sync_mode(store, "residential")

        assert config.mode == SyncMode.INCREMENTAL
        assert config.sync_since == LAST_SYNC - timedelta(minutes=5)
        assert SYNC_BUFFER == timedelta(minutes=5)

    async def test_status_lookup_failure_falls_back_to_full(self, store):
        store.statuses["residential"] = {"id": "residential", "last_sync_at": LAST_SYNC, "last_sync_status": "success"}
        store.fail_status_lookup = True

        config = await determine_sync_mode(store, "residential")

        assert config.mode == SyncMode.FULL
        assert config.sync_since is None
