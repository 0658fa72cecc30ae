"""Fakes shared by the dashboard tests."""

import asyncio
import time


class RecordingSurface:
    """Draw surface that records every call instead of drawing."""

    def __init__(self):
        self.calls = []

    def set_rows(self, rows):
        self.calls.append(("rows", [r.plain for r in rows]))

    def log_reset(self, title):
        self.calls.append(("reset", title))

    def log_append(self, line, scroll_end):
        self.calls.append(("append", line.plain, scroll_end))

    def log_set_loading(self, loading):
        self.calls.append(("loading", loading))

    def log_scroll_home(self):
        self.calls.append(("home",))

    def log_scroll_end(self):
        self.calls.append(("end",))

    def log_page_up(self):
        self.calls.append(("page_up",))

    def log_page_down(self):
        self.calls.append(("page_down",))

    def named(self, name):
        return [c for c in self.calls if c[0] == name]


class FakeFollower:
    """In-memory follow handle; push() feeds lines, stop() ends the stream."""

    def __init__(self, lines=()):
        self._queue = asyncio.Queue()
        self.stopped = False
        for line in lines:
            self._queue.put_nowait(line)

    def push(self, line):
        self._queue.put_nowait(line)

    async def lines(self):
        while True:
            line = await self._queue.get()
            if line is None:
                return
            yield line

    def stop(self):
        if not self.stopped:
            self.stopped = True
            self._queue.put_nowait(None)

    async def wait(self):
        return 0


async def wait_for(cond, timeout=5.0, step=0.01):
    deadline = time.monotonic() + timeout
    while not cond():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(step)
