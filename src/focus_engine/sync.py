"""Settings outbox: coalesces engine-driven settings changes and flushes them.

Local state is never rolled back when a flush fails; the unsent keys stay
queued underneath anything newer and go out with the next flush.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from .errors import Notice, NoticeKind
from .services import SettingsStore

logger = logging.getLogger(__name__)


class SettingsSynchronizer:
    def __init__(
        self,
        store: Optional[SettingsStore],
        user_id: Optional[str],
        on_notice: Optional[Callable[[Notice], None]] = None,
    ):
        self.store = store
        self.user_id = user_id
        self._outbox: dict[str, Any] = {}
        self._on_notice = on_notice
        self._flush_task: Optional[asyncio.Task] = None
        self.flush_count = 0
        self.failure_count = 0

    @property
    def enabled(self) -> bool:
        return self.store is not None and self.user_id is not None

    @property
    def pending(self) -> dict[str, Any]:
        return dict(self._outbox)

    def queue(self, patch: Mapping[str, Any]) -> None:
        """Add a patch; later values for a key replace earlier ones."""
        if not self.enabled:
            return
        self._outbox.update(patch)

    async def flush(self) -> bool:
        """Send everything queued as one partial merge.

        Returns:
            True if the outbox is empty afterwards, False if the store failed.
        """
        if not self.enabled or not self._outbox:
            return True

        batch = self._outbox
        self._outbox = {}
        try:
            await self.store.merge_partial(self.user_id, batch)
        except Exception as e:
            # Keys queued while we were waiting win over the failed batch.
            batch.update(self._outbox)
            self._outbox = batch
            self.failure_count += 1
            logger.warning(f"Settings sync failed ({len(batch)} keys pending): {e}")
            if self._on_notice is not None:
                self._on_notice(Notice(NoticeKind.SYNC_FAILED, "Could not save your progress. Will retry."))
            return False

        self.flush_count += 1
        logger.debug(f"Settings synced: {sorted(batch)}")
        return True

    def schedule_flush(self) -> Optional[asyncio.Task]:
        """Fire-and-forget flush on the running loop.

        Without a running loop the patch simply stays queued.
        """
        if not self.enabled or not self._outbox:
            return None
        if self._flush_task is not None and not self._flush_task.done():
            # The running flush snapshot is already taken; chain another.
            previous = self._flush_task

            async def _after():
                await asyncio.gather(previous, return_exceptions=True)
                await self.flush()

            try:
                self._flush_task = asyncio.get_running_loop().create_task(_after())
            except RuntimeError:
                return None
            return self._flush_task
        try:
            self._flush_task = asyncio.get_running_loop().create_task(self.flush())
        except RuntimeError:
            return None
        return self._flush_task

    async def drain(self) -> None:
        """Wait for any in-flight flush to finish."""
        while self._flush_task is not None and not self._flush_task.done():
            await asyncio.gather(self._flush_task, return_exceptions=True)
