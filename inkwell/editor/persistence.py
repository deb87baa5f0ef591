"""Debounced persistence of the document being edited."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from inkwell.concurrency import CancelScope
from inkwell.config import settings

logger = logging.getLogger(__name__)

SaveFn = Callable[[str], Awaitable[Any]]

# Teardown flushes outlive the editor scope; keep a reference so they finish.
_background_flushes: set[asyncio.Task] = set()


class PersistenceCoordinator:
    """
    Collapse bursts of edits into one write per quiescence window.

    schedule(text): restart the window; the write carries the latest text only.
    flush_if_dirty(): teardown, drop the window and write immediately if unsaved.

    A failed scheduled write is logged and left for the next schedule() to
    retry. last_saved_text only ever holds text the store confirmed.
    """

    def __init__(
        self,
        save: SaveFn,
        *,
        initial_text: str = "",
        delay: Optional[float] = None,
        flush_save: Optional[SaveFn] = None,
        scope: Optional[CancelScope] = None,
    ) -> None:
        self._save = save
        self._flush_save = flush_save or save
        self._delay = settings.save_debounce_seconds if delay is None else delay
        self._scope = scope or CancelScope(name="autosave")
        self._timer: Optional[asyncio.Task] = None
        self._latest = initial_text
        self._issued = 0          # sequence number of the last write issued
        self._confirmed = 0       # sequence number of the newest confirmed write
        self._in_flight: Optional[str] = None
        self.last_saved_text = initial_text

    @property
    def is_dirty(self) -> bool:
        return self._latest != self.last_saved_text

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def schedule(self, text: str) -> None:
        self._latest = text
        self._cancel_timer()
        # Compare with what the store will hold once the running write lands.
        settled = self._in_flight if self._in_flight is not None else self.last_saved_text
        if text == settled:
            return
        self._timer = self._scope.spawn(self._fire_after_quiescence(text), name="autosave-timer")

    async def _fire_after_quiescence(self, text: str) -> None:
        await asyncio.sleep(self._delay)
        # Past this point a new schedule() must not abort the write in progress.
        self._timer = None
        await self._write(text, self._save)

    async def _write(self, text: str, save: SaveFn) -> bool:
        self._issued += 1
        seq = self._issued
        self._in_flight = text
        try:
            await save(text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Auto-save failed, will retry on next edit: %s", exc)
            return False
        finally:
            if seq == self._issued:
                self._in_flight = None
        if seq > self._confirmed:
            self._confirmed = seq
            self.last_saved_text = text
        logger.debug("Saved %d chars", len(text))
        return True

    def flush_if_dirty(self) -> Optional[asyncio.Task]:
        """Cancel the window and fire an immediate write if there are unsaved changes.

        The write is fire-and-forget; the returned task is only for callers
        that want to wait for it during an orderly shutdown.
        """
        self._cancel_timer()
        if not self.is_dirty:
            return None
        task = asyncio.get_running_loop().create_task(self._flush(self._latest), name="autosave-flush")
        _background_flushes.add(task)
        task.add_done_callback(_background_flushes.discard)
        return task

    async def _flush(self, text: str) -> None:
        if not await self._write(text, self._flush_save):
            logger.error("Final save failed on close; %d unsaved chars are lost", len(text))

    async def aclose(self) -> None:
        task = self.flush_if_dirty()
        self._scope.cancel()
        if task is not None:
            await asyncio.wait({task})

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
