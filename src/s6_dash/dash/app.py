from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from pathlib import Path
from typing import Optional, Sequence

from rich.text import Text
from textual import events, on
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import DataTable, Label, RichLog, Static

from .commands import CommandDispatcher, SendFn
from .keys import Control, Intent, Jump, KeyDecoder, Move, Scroll, Simple
from .logtail import LogTailController, OpenFn
from .models import AppState, ServiceRef
from .poller import QueryFn, StatusPoller
from .view import LogPanel, StatusView, UpdateQueue, placeholder_markup
from .. import s6
from ..config import Settings

logger = logging.getLogger(__name__)

HELP_TEXT = Path(__file__).with_name("help.txt").read_text(encoding="utf-8")


class ServiceTable(DataTable, inherit_bindings=False):
    """Row cursor only; every key is decoded by the app."""


class HelpScreen(ModalScreen[None]):
    CLOSE_KEYS = {"escape", "enter", "q"}

    def compose(self) -> ComposeResult:
        with Container(id="help"):
            yield Static(Text(HELP_TEXT.rstrip("\n")), id="help-text")

    def on_mount(self) -> None:
        self.query_one("#help").border_title = "Help"

    def on_key(self, event: events.Key) -> None:
        event.stop()
        if event.key in self.CLOSE_KEYS or event.character == "?":
            self.dismiss(None)
        elif event.key == "ctrl+l":
            self.app.refresh(repaint=True, layout=True)


class S6DashApp(App):
    CSS_PATH = Path(__file__).with_name("app.tcss")
    TITLE = "s6-dash"

    def __init__(
        self,
        state: AppState,
        settings: Optional[Settings] = None,
        query: Optional[QueryFn] = None,
        send: Optional[SendFn] = None,
        opener: Optional[OpenFn] = None,
    ) -> None:
        super().__init__()
        self.state = state
        self.settings = settings or Settings()
        self._query = query or partial(s6.query_status, svstat_bin=self.settings.svstat_bin)
        self._send = send or partial(s6.send_control, svc_bin=self.settings.svc_bin)
        self._opener = opener or partial(s6.open_log_follow, tail_bin=self.settings.tail_bin)
        self.table: ServiceTable | None = None
        # Avoid clashing with Textual App.log (read-only property)
        self.log_widget: RichLog | None = None
        self.decoder = KeyDecoder()
        self.updates: UpdateQueue | None = None
        self.poller: StatusPoller | None = None
        self.dispatcher: CommandDispatcher | None = None
        self.tail: LogTailController | None = None
        self._stopped = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="main"):
            self.table = ServiceTable(show_header=False, cursor_type="row", zebra_stripes=False)
            self.table.add_column("Services", key="svc")
            yield self.table
            self.log_widget = RichLog(highlight=False, markup=False, wrap=False, auto_scroll=False)
            self.log_widget.can_focus = False
            self.log_widget.display = False
            yield self.log_widget
        yield Label("?: Help", id="hint")

    async def on_mount(self) -> None:
        assert self.table
        self.table.border_title = str(self.state.root)
        for ref in self.state.services:
            self.table.add_row(Text.from_markup(placeholder_markup(ref)), key=str(ref.path))
        self.table.focus()

        self.updates = UpdateQueue(asyncio.get_running_loop())
        status_view = StatusView(self.updates, self)
        self.poller = StatusPoller(
            self.state.services,
            self._query,
            status_view.publish,
            interval=self.settings.poll_interval,
        )
        self.dispatcher = CommandDispatcher(self._send, self.poller)
        self.tail = LogTailController(LogPanel(self.updates, self), self._opener, debounce=self.settings.debounce)
        self.poller.start()

    async def on_unmount(self) -> None:
        await self._teardown()

    async def _teardown(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self.tail is not None:
            await self.tail.close()
        # in-flight control requests still ask for a refresh; let them land first
        if self.dispatcher is not None:
            await self.dispatcher.drain()
        if self.poller is not None:
            await self.poller.stop()
        if self.updates is not None:
            self.updates.close()

    # Draw surface ---------------------------------------------------------

    def set_rows(self, rows: Sequence[Text]) -> None:
        assert self.table
        count = min(len(rows), self.table.row_count)
        for i in range(count):
            self.table.update_cell_at((i, 0), rows[i], update_width=True)
        self.state.rows = [r.plain for r in rows]

    def log_reset(self, title: str) -> None:
        assert self.log_widget
        self.log_widget.clear()
        self.log_widget.border_title = title

    def log_append(self, line: Text, scroll_end: bool) -> None:
        assert self.log_widget
        self.log_widget.write(line, scroll_end=scroll_end)

    def log_set_loading(self, loading: bool) -> None:
        assert self.log_widget
        self.log_widget.loading = loading

    def log_scroll_home(self) -> None:
        assert self.log_widget
        self.log_widget.scroll_home(animate=False)

    def log_scroll_end(self) -> None:
        assert self.log_widget
        self.log_widget.scroll_end(animate=False)

    def log_page_up(self) -> None:
        assert self.log_widget
        self.log_widget.scroll_page_up(animate=False)

    def log_page_down(self) -> None:
        assert self.log_widget
        self.log_widget.scroll_page_down(animate=False)

    # Input ----------------------------------------------------------------

    async def on_key(self, event: events.Key) -> None:
        key = event.character if event.is_printable and event.character else event.key
        intent = self.decoder.feed(key, time.monotonic())
        if intent is None:
            return
        event.stop()
        await self.apply_intent(intent)

    async def apply_intent(self, intent: Intent) -> None:
        if isinstance(intent, Move):
            self._select_row(self.state.selected_index + intent.delta)
        elif isinstance(intent, Jump):
            self._select_row(0 if intent.to == "first" else len(self.state.services) - 1)
        elif isinstance(intent, Scroll):
            self._scroll(intent.kind)
        elif isinstance(intent, Control):
            assert self.dispatcher
            self.dispatcher.dispatch(self.state.services, self.state.selected_index, intent.action)
        elif isinstance(intent, Simple):
            if intent.name == "toggle_help":
                self._show_help()
            elif intent.name == "toggle_log":
                await self.toggle_log()
            elif intent.name == "redraw":
                self.refresh(repaint=True, layout=True)
            elif intent.name == "quit":
                await self.action_quit()

    def _scroll(self, kind: str) -> None:
        if kind == "home":
            self.log_scroll_home()
        elif kind == "end":
            self.log_scroll_end()
        elif kind == "page_up":
            self.log_page_up()
        elif kind == "page_down":
            self.log_page_down()

    def _select_row(self, row_index: int) -> None:
        assert self.table
        if 0 <= row_index < len(self.state.services):
            self.table.cursor_coordinate = (row_index, 0)
            self.state.selected_index = row_index

    def _show_help(self) -> None:
        if self.state.help_visible:
            return
        self.state.help_visible = True

        def _closed(_result: None) -> None:
            self.state.help_visible = False

        self.push_screen(HelpScreen(), callback=_closed)

    async def toggle_log(self) -> None:
        assert self.log_widget and self.tail
        self.state.log_visible = not self.state.log_visible
        self.log_widget.display = self.state.log_visible
        if self.state.log_visible:
            ref = self.state.selected()
            if ref is not None:
                await self.tail.open(ref)
        else:
            await self.tail.close()

    @on(DataTable.RowHighlighted)
    async def _on_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        row = event.cursor_row
        if not (0 <= row < len(self.state.services)):
            return
        self.state.selected_index = row
        ref = self.state.services[row]
        if self.state.log_visible and self.tail is not None:
            current = self.tail.session
            if current is None or current.ref != ref:
                await self.tail.open(ref)

    async def action_quit(self) -> None:
        await self._teardown()
        self.exit()


def run_dash(
    root: Path,
    services: list[ServiceRef],
    settings: Settings,
) -> None:
    state = AppState(root=root, services=services)
    app = S6DashApp(state=state, settings=settings)
    app.run()

