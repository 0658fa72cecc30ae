from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from .models import ControlAction, ServiceRef
from ..s6 import SupervisorError

logger = logging.getLogger(__name__)

SendFn = Callable[[ServiceRef, ControlAction], Awaitable[None]]


class Refresher(Protocol):
    def request_refresh(self) -> bool: ...


class CommandDispatcher:
    """Fire-and-forget control requests against the selected service.

    Failures are logged, never raised to the caller. Every request is followed
    by an out-of-band status poll, whatever its outcome.
    """

    def __init__(self, send: SendFn, poller: Refresher) -> None:
        self.send = send
        self.poller = poller
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, services: Sequence[ServiceRef], index: Optional[int], action: ControlAction) -> bool:
        if index is None or not (0 <= index < len(services)):
            return False
        ref = services[index]
        task = asyncio.create_task(self._run(ref, action))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _run(self, ref: ServiceRef, action: ControlAction) -> None:
        try:
            await self.send(ref, action)
            logger.info("%s: requested %s", ref.name, action)
        except SupervisorError as e:
            logger.error("%s: error requesting %s: %s", ref.name, action, e)
        except OSError as e:
            logger.error("%s: error requesting %s: %s", ref.name, action, e)
        finally:
            self.poller.request_refresh()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
