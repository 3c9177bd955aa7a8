from __future__ import annotations
import asyncio
from typing import Callable, List, Optional

from midindex.core.logger import get_logger
from midindex.md.manager import ConnectorManager

log = get_logger(__name__)


class RefreshScheduler:
    """
    Runs ConnectorManager.ensure_all for every tracked pair, once right away
    and then every ``interval_ms``. Streaming venues are skipped inside the
    manager, so a tick against a healthy stream costs one state check.
    """

    def __init__(self, manager: ConnectorManager, pairs_fn: Callable[[], List[str]], interval_ms: int = 6_000):
        self.manager = manager
        self.pairs_fn = pairs_fn
        self.interval_ms = interval_ms
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.create_task(self._loop())
        return self._task

    async def tick(self) -> None:
        pairs = self.pairs_fn()
        if pairs:
            await self.manager.ensure_all(pairs)
        self.ticks += 1

    async def _loop(self):
        while True:
            try:
                await self.tick()
            except Exception as e:
                log.error(f"refresh tick failed: {e!r}")
            await asyncio.sleep(self.interval_ms / 1000)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
