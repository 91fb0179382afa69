"""Development-mode source watching with debounced, coalesced rebuilds."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from watchfiles import Change, awatch

from .logging import get_logger
from .models import WatchEvent

_CHANGE_KINDS = {
    Change.added: "added",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


def to_watch_events(changes: Iterable[Tuple[Change, str]]) -> List[WatchEvent]:
    now = time.time()
    return [
        WatchEvent(kind=_CHANGE_KINDS.get(change, "modified"), path=Path(path), timestamp=now)
        for change, path in sorted(changes, key=lambda item: item[1])
    ]


class Debouncer:
    """Collapses a burst of events into one callback after a quiet period.

    Every event restarts the window; the callback fires once no event arrived
    for ``window`` seconds.
    """

    def __init__(self, window: float, on_settled: Callable[[], None]) -> None:
        self.window = window
        self._on_settled = on_settled
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def notify(self, event: WatchEvent) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.window, self._fire)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self._on_settled()


class RebuildWorker:
    """Runs rebuilds one at a time.

    A request made while a rebuild is running marks the worker dirty, so exactly
    one more rebuild follows the current one however many requests arrived.
    """

    def __init__(self, rebuild: Callable[[], Awaitable[object]]) -> None:
        self._rebuild = rebuild
        self._dirty = asyncio.Event()
        self.running = False
        self.completed = 0
        self.logger = get_logger("watch")

    @property
    def state(self) -> str:
        if self.running:
            return "rendering"
        return "idle"

    def request(self) -> None:
        self._dirty.set()

    async def run(self) -> None:
        while True:
            await self._dirty.wait()
            self._dirty.clear()
            self.running = True
            try:
                await self._rebuild()
            except Exception as exc:
                self.logger.error("Rebuild failed: %s", exc)
            finally:
                self.running = False
                self.completed += 1


class SourceWatcher:
    """Watches the source tree and feeds its changes to a debouncer."""

    def __init__(
        self,
        source_dir: Path,
        worker: RebuildWorker,
        *,
        debounce_seconds: float = 0.5,
    ) -> None:
        self.source_dir = source_dir
        self.worker = worker
        self.debouncer = Debouncer(debounce_seconds, worker.request)
        self.logger = get_logger("watch")

    @property
    def state(self) -> str:
        if self.debouncer.pending:
            return "debouncing"
        return self.worker.state

    def handle(self, changes: Set[Tuple[Change, str]]) -> None:
        for event in to_watch_events(changes):
            self.logger.debug("[%s] %s", event.kind, event.path)
            self.debouncer.notify(event)

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        self.logger.info("Watch mode enabled, watching files from %s", self.source_dir)
        try:
            async for changes in awatch(self.source_dir, stop_event=stop_event):
                self.handle(changes)
        finally:
            self.debouncer.cancel()


__all__ = ["Debouncer", "RebuildWorker", "SourceWatcher", "to_watch_events"]
