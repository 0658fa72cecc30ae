from pathlib import Path

import pytest

from helpers import FakeFollower, wait_for
from s6_dash.config import Settings
from s6_dash.dash.app import HelpScreen, S6DashApp
from s6_dash.dash.keys import Scroll
from s6_dash.dash.logtail import TailState
from s6_dash.dash.models import UP, AppState, ServiceRef, StatusRecord


def _app(tmp_path: Path, debounce: float = 0.05):
    services = [ServiceRef(tmp_path / "alpha"), ServiceRef(tmp_path / "beta")]
    sent = []
    followers = {}

    async def query(ref):
        if ref.name == "beta":
            return StatusRecord(up=False, wanted_up=True, exit_code=1, signal="SIGTERM")
        return StatusRecord(up=True, wanted_up=True, ready=True)

    async def send(ref, action):
        sent.append((ref.name, action))

    async def opener(ref):
        followers[ref.name] = FakeFollower([f"{ref.name} started"])
        return followers[ref.name]

    app = S6DashApp(
        AppState(root=tmp_path, services=services),
        settings=Settings(poll_interval=0.05, debounce=debounce),
        query=query,
        send=send,
        opener=opener,
    )
    return app, sent, followers


@pytest.mark.asyncio
async def test_rows_render_from_poll_snapshot(tmp_path):
    app, _sent, _followers = _app(tmp_path)
    async with app.run_test() as pilot:
        await wait_for(lambda: len(app.state.rows) == 2)
        await pilot.pause()
        assert app.state.rows[0] == "↑ ✓ alpha"
        assert app.state.rows[1] == "↓   beta - exitcode: 1 - signal: SIGTERM"


@pytest.mark.asyncio
async def test_keys_move_selection_and_dispatch(tmp_path):
    app, sent, _followers = _app(tmp_path)
    async with app.run_test() as pilot:
        await pilot.press("j")
        await pilot.pause()
        assert app.state.selected_index == 1
        await pilot.press("u")
        await pilot.pause(0.1)
        assert sent == [("beta", UP)]
        await pilot.press("g", "g")
        await pilot.pause()
        assert app.state.selected_index == 0
        await pilot.press("x")
        await pilot.pause()
        assert sent == [("beta", UP)]


@pytest.mark.asyncio
async def test_log_panel_follows_selection(tmp_path):
    app, _sent, followers = _app(tmp_path)
    async with app.run_test() as pilot:
        await pilot.press("enter")
        await pilot.pause()
        assert app.state.log_visible
        assert app.tail.session.ref.name == "alpha"
        await wait_for(lambda: app.tail.state is TailState.STEADY)

        await pilot.press("j")
        await pilot.pause(0.05)
        await wait_for(lambda: app.tail.session is not None and app.tail.session.ref.name == "beta")
        assert followers["alpha"].stopped

        await pilot.press("enter")
        await pilot.pause()
        assert not app.state.log_visible
        assert app.tail.session is None
        assert followers["beta"].stopped


@pytest.mark.asyncio
async def test_help_overlay_toggles(tmp_path):
    app, _sent, _followers = _app(tmp_path)
    async with app.run_test() as pilot:
        await pilot.press("question_mark")
        await pilot.pause()
        assert app.state.help_visible
        assert isinstance(app.screen, HelpScreen)
        await pilot.press("escape")
        await pilot.pause()
        assert not app.state.help_visible
        assert not isinstance(app.screen, HelpScreen)


@pytest.mark.asyncio
async def test_quit_closes_log_session(tmp_path):
    app, _sent, followers = _app(tmp_path)
    async with app.run_test() as pilot:
        await pilot.press("enter")
        await pilot.pause()
        await pilot.press("q")
        await pilot.pause()
    assert followers["alpha"].stopped
    assert not app.poller.running


@pytest.mark.asyncio
async def test_manual_scroll_during_burst_leaves_debounce_alone(tmp_path):
    app, _sent, _followers = _app(tmp_path, debounce=0.5)
    async with app.run_test() as pilot:
        await pilot.press("enter")
        await wait_for(lambda: app.tail.state is TailState.BURSTING)
        # let the replayed "alpha started" line re-arm the timer first
        await pilot.pause(0.05)
        session = app.tail.session
        timer = session._timer
        assert timer is not None

        for kind in ("home", "page_down", "page_up", "end"):
            await app.apply_intent(Scroll(kind))
            assert app.tail.session is session
            assert session.state is TailState.BURSTING
            assert session.in_burst
            assert session.settle_count == 0
            assert session._timer is timer

        await wait_for(lambda: session.state is TailState.STEADY)
        await pilot.pause(1.0)
        assert session.settle_count == 1


@pytest.mark.asyncio
async def test_exit_without_quit_key_still_cleans_up(tmp_path):
    app, _sent, followers = _app(tmp_path)
    async with app.run_test() as pilot:
        await pilot.press("enter")
        await wait_for(lambda: "alpha" in followers)
        await pilot.pause()
    assert followers["alpha"].stopped
    assert not app.poller.running
    assert app.tail.session is None
