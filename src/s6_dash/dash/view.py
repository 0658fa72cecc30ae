"""View model and render adapter.

Everything that changes what is on screen goes through an UpdateQueue: the
poller, the log tail and the dispatcher never touch widgets directly. Row and
log-line rendering happens before submission so the render loop only swaps in
finished text.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Optional, Protocol, Sequence

from rich.markup import escape
from rich.text import Text

from .models import ServiceRef, Snapshot, StatusRecord

logger = logging.getLogger(__name__)

# Leading ISO timestamp or s6-log TAI64N label
TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}\.\d+|@[0-9a-fA-F]{24})")
TIMESTAMP_STYLE = "grey50"


class UpdateQueue:
    """Single-consumer queue of closures drained by the render loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        # Safe from any thread
        if self._closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._run, fn, args)
        except RuntimeError:
            # loop already closed during shutdown
            self._closed = True

    def _run(self, fn: Callable[..., Any], args: tuple) -> None:
        if self._closed:
            return
        try:
            fn(*args)
        except Exception:
            logger.exception("view update failed")

    def close(self) -> None:
        self._closed = True


class DrawSurface(Protocol):
    def set_rows(self, rows: Sequence[Text]) -> None: ...

    def log_reset(self, title: str) -> None: ...

    def log_append(self, line: Text, scroll_end: bool) -> None: ...

    def log_set_loading(self, loading: bool) -> None: ...

    def log_scroll_home(self) -> None: ...

    def log_scroll_end(self) -> None: ...

    def log_page_up(self) -> None: ...

    def log_page_down(self) -> None: ...


def status_markup(ref: ServiceRef, record: StatusRecord) -> str:
    """Render one service row as Rich markup.

    Layout: ``<up/down glyph> <ready glyph> <name>[ - detail]``.
    """
    parts: list[str] = []
    if record.error is not None:
        parts.append("[red]×[/]")
    elif record.up:
        parts.append("[green]↑[/]" if record.wanted_up else "[orange1]↑[/]")
    else:
        parts.append("[red]↓[/]" if record.wanted_up else "[grey50]↓[/]")
    parts.append(" ")
    parts.append("[green]✓[/]" if record.ready else " ")
    parts.append(" ")
    parts.append(escape(ref.name))
    if record.error is not None:
        parts.append(" - ")
        parts.append(f"[red]error: {escape(record.error)}[/]")
    elif not record.up and record.wanted_up:
        parts.append(" - ")
        parts.append(f"[red]exitcode: {record.exit_code} - signal: {escape(record.signal)}[/]")
    return "".join(parts)


def placeholder_markup(ref: ServiceRef) -> str:
    return f"[grey50]?[/]   {escape(ref.name)}"


def render_log_line(raw: str) -> Text:
    text = Text.from_ansi(raw)
    m = TIMESTAMP_RE.match(text.plain)
    if m:
        text.stylize(TIMESTAMP_STYLE, 0, m.end())
    return text


class StatusView:
    """Publishes poll snapshots as one row-set update per cycle."""

    def __init__(self, queue: UpdateQueue, surface: DrawSurface) -> None:
        self.queue = queue
        self.surface = surface

    def publish(self, snapshot: Snapshot) -> None:
        rows = [Text.from_markup(status_markup(ref, rec)) for ref, rec in snapshot.rows]
        self.queue.submit(self.surface.set_rows, rows)


class CancelToken:
    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class LogPanel:
    """Token-guarded log view writes.

    The token is checked when the write is submitted and again when the render
    loop runs it, so a retired session can never reach the widget.
    """

    def __init__(self, queue: UpdateQueue, surface: DrawSurface) -> None:
        self.queue = queue
        self.surface = surface

    def _guarded(self, token: CancelToken, fn: Callable[..., Any], *args: Any) -> None:
        if token.cancelled:
            return

        def _apply() -> None:
            if not token.cancelled:
                fn(*args)

        self.queue.submit(_apply)

    def reset(self, token: CancelToken, title: str, loading: bool) -> None:
        def _reset() -> None:
            self.surface.log_reset(title)
            self.surface.log_set_loading(loading)

        self._guarded(token, _reset)

    def append(self, token: CancelToken, raw: str, follow: bool) -> None:
        self._guarded(token, self.surface.log_append, render_log_line(raw), follow)

    def note(self, token: CancelToken, message: str) -> None:
        self._guarded(token, self.surface.log_append, Text(message, style="red"), False)

    def settle(self, token: CancelToken) -> None:
        def _settle() -> None:
            self.surface.log_set_loading(False)
            self.surface.log_scroll_end()

        self._guarded(token, _settle)
