from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from typing import Awaitable, Callable, Optional, Sequence

from .models import ServiceRef, Snapshot, StatusRecord
from ..s6 import SupervisorError

logger = logging.getLogger(__name__)

QueryFn = Callable[[ServiceRef], Awaitable[StatusRecord]]
PublishFn = Callable[[Snapshot], None]


class StatusPoller:
    """Polls every service on a fixed period and publishes one Snapshot per cycle.

    Polling is read-only, so an out-of-band refresh racing the scheduled cycle
    is harmless; at most one extra poll runs at a time.
    """

    def __init__(
        self,
        services: Sequence[ServiceRef],
        query: QueryFn,
        publish: PublishFn,
        interval: float = 1.0,
        concurrency: int = 4,
    ) -> None:
        self.services = tuple(services)
        self.query = query
        self.publish = publish
        self.interval = interval
        self.concurrency = concurrency
        self._task: Optional[asyncio.Task] = None
        self._extra: Optional[asyncio.Task] = None
        self._stopped = False

    async def _query_one(self, sem: asyncio.Semaphore, ref: ServiceRef) -> StatusRecord:
        async with sem:
            try:
                return await self.query(ref)
            except SupervisorError as e:
                return StatusRecord.failed(str(e))
            except Exception as e:
                logger.exception("%s: status query failed", ref.name)
                return StatusRecord.failed(f"{type(e).__name__}: {e}")

    async def poll_once(self) -> Snapshot:
        sem = asyncio.Semaphore(self.concurrency)
        records = await asyncio.gather(*(self._query_one(sem, ref) for ref in self.services))
        snapshot = Snapshot(rows=tuple(zip(self.services, records)), taken_at=time.monotonic())
        self.publish(snapshot)
        return snapshot

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("status poll failed")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        self._stopped = False
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    def request_refresh(self) -> bool:
        """Start an immediate poll unless one is already in flight."""
        if self._stopped:
            return False
        if self._extra is not None and not self._extra.done():
            return False
        self._extra = asyncio.create_task(self.poll_once())
        self._extra.add_done_callback(self._extra_done)
        return True

    @staticmethod
    def _extra_done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("out-of-band poll failed: %s", task.exception())

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self) -> None:
        self._stopped = True
        for task in (self._task, self._extra):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._task = None
        self._extra = None
