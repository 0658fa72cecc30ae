"""Live log tail with burst debouncing.

A freshly opened tail replays the whole existing file at once. While that
burst lasts the view shows a loading overlay and keeps its scroll position;
after ``debounce`` seconds without a new line the session settles: the overlay
is hidden, the view jumps to the end and every later line auto-scrolls.

Session states::

    IDLE -> OPENING -> BURSTING -> STEADY
               \\-> IDLE (open failed, error shown inline)
"""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import suppress
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from .models import ServiceRef
from .view import CancelToken, LogPanel
from ..s6 import SupervisorError

logger = logging.getLogger(__name__)


class TailState(enum.Enum):
    IDLE = "idle"
    OPENING = "opening"
    BURSTING = "bursting"
    STEADY = "steady"


class Follower(Protocol):
    def lines(self) -> AsyncIterator[str]: ...

    def stop(self) -> None: ...

    async def wait(self) -> Optional[int]: ...


OpenFn = Callable[[ServiceRef], Awaitable[Follower]]


class LogSession:
    """One active tail: follow handle, debounce timer, token and pump task."""

    def __init__(self, ref: ServiceRef, panel: LogPanel, debounce: float = 0.5) -> None:
        self.ref = ref
        self.panel = panel
        self.debounce = debounce
        self.token = CancelToken()
        self.state = TailState.IDLE
        self.in_burst = False
        self.settle_count = 0
        self._follower: Optional[Follower] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def title(self) -> str:
        return f"{self.ref.name} (log)"

    async def start(self, opener: OpenFn) -> None:
        self.state = TailState.OPENING
        self.panel.reset(self.token, self.title, loading=False)
        try:
            follower = await opener(self.ref)
        except (SupervisorError, OSError) as e:
            logger.debug("%s: log open failed: %s", self.ref.name, e)
            self.panel.note(self.token, f"Error opening log: {e}")
            if not self.token.cancelled:
                self.state = TailState.IDLE
            return
        if self.token.cancelled:
            # Retired while the handle was opening
            follower.stop()
            with suppress(Exception):
                await follower.wait()
            return
        self._follower = follower
        self.state = TailState.BURSTING
        self.in_burst = True
        self.panel.reset(self.token, self.title, loading=True)
        self._arm_timer()
        self._task = asyncio.create_task(self._pump(follower))

    def _arm_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce, self._on_quiet)

    def _on_quiet(self) -> None:
        self._timer = None
        if self.token.cancelled or not self.in_burst:
            return
        self.in_burst = False
        self.state = TailState.STEADY
        self.settle_count += 1
        self.panel.settle(self.token)

    def on_line(self, line: str) -> None:
        if self.token.cancelled:
            return
        if self.in_burst:
            self._arm_timer()
            self.panel.append(self.token, line, follow=False)
        else:
            self.panel.append(self.token, line, follow=True)

    async def _pump(self, follower: Follower) -> None:
        try:
            async for line in follower.lines():
                if self.token.cancelled:
                    break
                self.on_line(line)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("%s: log stream failed: %s", self.ref.name, e)
            self.panel.note(self.token, f"Log stream failed: {e}")
            follower.stop()
            return
        if not self.token.cancelled:
            self.panel.note(self.token, "[log stream ended]")

    def cancel(self) -> None:
        """Retire the session; no view write happens after this returns."""
        self.token.cancel()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._follower is not None:
            self._follower.stop()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.in_burst = False
        self.state = TailState.IDLE

    async def wait_stopped(self) -> None:
        if self._task is not None:
            with suppress(asyncio.CancelledError):
                await self._task
        if self._follower is not None:
            with suppress(Exception):
                await self._follower.wait()


class LogTailController:
    """Owns the single active LogSession."""

    def __init__(self, panel: LogPanel, opener: OpenFn, debounce: float = 0.5) -> None:
        self.panel = panel
        self.opener = opener
        self.debounce = debounce
        self._session: Optional[LogSession] = None

    @property
    def session(self) -> Optional[LogSession]:
        return self._session

    @property
    def state(self) -> TailState:
        return self._session.state if self._session is not None else TailState.IDLE

    async def open(self, ref: ServiceRef) -> LogSession:
        # A concurrent open may have installed a session while we awaited teardown
        while self._session is not None:
            await self.close()
        session = LogSession(ref, self.panel, debounce=self.debounce)
        self._session = session
        logger.debug("opening log for %s", ref.name)
        await session.start(self.opener)
        return session

    async def close(self) -> None:
        session = self._session
        if session is None:
            return
        self._session = None
        session.cancel()
        await session.wait_stopped()
        logger.debug("closed log for %s", session.ref.name)
