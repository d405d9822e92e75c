"""Status poller: watch a sync status record until it reaches a terminal state.

The watcher only reads the state store, so it works the same whether the sync
runs in this process or in another one sharing the store.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from promptsync.schemas.sync import SyncStatus
    from promptsync.services.sync_state_service import SyncStateService

    TerminalCallback = Callable[[SyncStatus | None], Awaitable[Any] | Any]

logger = logging.getLogger(__name__)


class StatusPoller:
    """Polls status records, at most one active watch per status key.

    Args:
        state: Store the records are read from.
        interval: Seconds between reads.
        timeout: Give up after this many seconds; None polls until the record
            changes, however long that takes.
    """

    def __init__(
        self,
        state: SyncStateService,
        *,
        interval: float = 2.0,
        timeout: float | None = None,
    ) -> None:
        if interval <= 0:
            msg = f"interval must be > 0, got {interval}"
            raise ValueError(msg)
        self._state = state
        self._interval = interval
        self._timeout = timeout
        self._watches: dict[str, asyncio.Task[None]] = {}

    def watch(
        self, sync_id: str, status_key: str, on_terminal: TerminalCallback
    ) -> asyncio.Task[None]:
        """Start watching ``status_key`` for ``sync_id``, replacing any earlier watch.

        ``on_terminal`` receives the terminal record, or None when the record
        was superseded/removed, could not be read, or the timeout expired.
        """
        previous = self._watches.pop(status_key, None)
        if previous is not None and not previous.done():
            logger.debug("Cancelling previous watch on %s", status_key)
            previous.cancel()

        task = asyncio.create_task(self._poll(sync_id, status_key, on_terminal))
        self._watches[status_key] = task
        task.add_done_callback(lambda done, key=status_key: self._forget(key, done))
        return task

    def _forget(self, status_key: str, task: asyncio.Task[None]) -> None:
        if self._watches.get(status_key) is task:
            del self._watches[status_key]

    def is_watching(self, status_key: str) -> bool:
        task = self._watches.get(status_key)
        return task is not None and not task.done()

    async def _poll(self, sync_id: str, status_key: str, on_terminal: TerminalCallback) -> None:
        loop = asyncio.get_running_loop()
        deadline = None if self._timeout is None else loop.time() + self._timeout
        result: SyncStatus | None = None

        while True:
            await asyncio.sleep(self._interval)
            try:
                record = await self._state.read_key(status_key)
            except Exception:
                logger.exception("Error polling sync status %s", status_key)
                break

            if record is None or record.id != sync_id:
                logger.debug("Sync %s no longer current at %s, stopping watch", sync_id, status_key)
                break
            if record.status.is_terminal:
                logger.debug("Sync %s finished with status %s", sync_id, record.status)
                result = record
                break

            logger.debug("Sync %s is still in progress...", sync_id)
            if deadline is not None and loop.time() >= deadline:
                logger.warning(
                    "Gave up watching sync %s after %.1fs; it is still in progress",
                    sync_id,
                    self._timeout,
                )
                break

        try:
            outcome = on_terminal(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Sync status callback for %s failed", sync_id)

    async def wait(self, status_key: str) -> None:
        """Wait for the active watch on ``status_key`` (if any) to finish."""
        task = self._watches.get(status_key)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def cancel(self, status_key: str) -> None:
        task = self._watches.pop(status_key, None)
        if task is not None:
            task.cancel()

    async def aclose(self) -> None:
        """Cancel every active watch."""
        tasks = list(self._watches.values())
        self._watches.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
