"""Hierarchical cancellation scopes for network-backed operations.

Every stream read, edit request and scheduled save runs inside a scope.
Cancelling a scope cancels its tasks and, transitively, every child scope, so
closing the editor tears down the edit request and the pending save together.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional

logger = logging.getLogger(__name__)


class CancelScope:
    def __init__(self, parent: Optional["CancelScope"] = None, name: str = "") -> None:
        self.name = name
        self._parent = parent
        self._children: set[CancelScope] = set()
        self._tasks: set[asyncio.Task] = set()
        self._callbacks: list[Callable[[], None]] = []
        self._cancelled = False
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def child(self, name: str = "") -> "CancelScope":
        return CancelScope(parent=self, name=name)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task:
        """Run ``coro`` as a task owned by this scope."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        if self._cancelled:
            task.cancel()
        return task

    def on_cancel(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        logger.debug("Cancelling scope %r (%d task(s), %d child scope(s))",
                     self.name, len(self._tasks), len(self._children))
        for task in list(self._tasks):
            task.cancel()
        for child in list(self._children):
            child.cancel()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        self._detach()

    def close(self) -> None:
        """Release a finished scope from its parent without cancelling anything."""
        self._callbacks.clear()
        self._detach()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError(f"scope {self.name!r} cancelled")

    def _detach(self) -> None:
        if self._parent is not None:
            self._parent._children.discard(self)
            self._parent = None
