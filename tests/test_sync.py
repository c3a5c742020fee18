"""SettingsSynchronizer outbox: coalescing, failure retention, retry."""

import asyncio

import pytest

from conftest import FakeSettingsStore
from focus_engine.errors import NoticeKind
from focus_engine.sync import SettingsSynchronizer


class SlowStore(FakeSettingsStore):
    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def merge_partial(self, user_id, patch):
        await self.gate.wait()
        await super().merge_partial(user_id, patch)


class TestQueue:
    def test_disabled_without_user(self):
        sync = SettingsSynchronizer(FakeSettingsStore(), None)
        sync.queue({"goldCoins": 1})
        assert sync.enabled is False
        assert sync.pending == {}

    def test_later_values_win(self):
        sync = SettingsSynchronizer(FakeSettingsStore(), "alice")
        sync.queue({"goldCoins": 1, "silverCoins": 5})
        sync.queue({"goldCoins": 9})
        assert sync.pending == {"goldCoins": 9, "silverCoins": 5}

    def test_schedule_without_loop_keeps_patch(self):
        sync = SettingsSynchronizer(FakeSettingsStore(), "alice")
        sync.queue({"workDuration": 30})
        assert sync.schedule_flush() is None
        assert sync.pending == {"workDuration": 30}


class TestFlush:
    @pytest.mark.asyncio
    async def test_one_merge_per_flush(self):
        store = FakeSettingsStore()
        sync = SettingsSynchronizer(store, "alice")
        sync.queue({"goldCoins": 1})
        sync.queue({"silverCoins": 5})
        assert await sync.flush() is True
        assert store.merges == [{"goldCoins": 1, "silverCoins": 5}]
        assert sync.pending == {}
        assert sync.flush_count == 1

    @pytest.mark.asyncio
    async def test_empty_flush_is_noop(self):
        store = FakeSettingsStore()
        sync = SettingsSynchronizer(store, "alice")
        assert await sync.flush() is True
        assert store.merges == []

    @pytest.mark.asyncio
    async def test_failure_retains_patch_and_reports(self):
        notices = []
        store = FakeSettingsStore(fail=True)
        sync = SettingsSynchronizer(store, "alice", on_notice=notices.append)
        sync.queue({"goldCoins": 10})

        assert await sync.flush() is False
        assert sync.pending == {"goldCoins": 10}
        assert sync.failure_count == 1
        assert notices[0].kind is NoticeKind.SYNC_FAILED

        store.fail = False
        sync.queue({"silverCoins": 5})
        assert await sync.flush() is True
        assert store.doc == {"goldCoins": 10, "silverCoins": 5}

    @pytest.mark.asyncio
    async def test_newer_keys_beat_failed_batch(self):
        store = FakeSettingsStore(fail=True)
        sync = SettingsSynchronizer(store, "alice")
        sync.queue({"goldCoins": 10})

        original = store.merge_partial

        async def failing_after_queue(user_id, patch):
            sync.queue({"goldCoins": 20})
            await original(user_id, patch)

        store.merge_partial = failing_after_queue
        await sync.flush()
        assert sync.pending == {"goldCoins": 20}

    @pytest.mark.asyncio
    async def test_scheduled_flushes_chain(self):
        store = SlowStore()
        sync = SettingsSynchronizer(store, "alice")
        sync.queue({"goldCoins": 1})
        sync.schedule_flush()
        await asyncio.sleep(0)
        sync.queue({"goldCoins": 2})
        sync.schedule_flush()

        store.gate.set()
        await sync.drain()
        assert store.merges == [{"goldCoins": 1}, {"goldCoins": 2}]
        assert store.doc["goldCoins"] == 2
