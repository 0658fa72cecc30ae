from __future__ import annotations

import signal
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping, Optional, Union

from .models import DOWN, RESTART, UP, ControlAction

CHORD_WINDOW = 0.5

SIGNAL_KEYS: Mapping[str, signal.Signals] = MappingProxyType(
    {
        "A": signal.SIGALRM,
        "B": signal.SIGABRT,
        "Q": signal.SIGQUIT,
        "H": signal.SIGHUP,
        "K": signal.SIGKILL,
        "T": signal.SIGTERM,
        "I": signal.SIGINT,
        "1": signal.SIGUSR1,
        "2": signal.SIGUSR2,
        "P": signal.SIGSTOP,
        "C": signal.SIGCONT,
        "Y": signal.SIGWINCH,
    }
)

ACTION_KEYS: Mapping[str, ControlAction] = MappingProxyType({"u": UP, "d": DOWN, "r": RESTART})

ScrollKind = Literal["home", "end", "page_up", "page_down"]

SCROLL_KEYS: Mapping[str, ScrollKind] = MappingProxyType(
    {
        "home": "home",
        "ctrl+a": "home",
        "end": "end",
        "ctrl+e": "end",
        "pageup": "page_up",
        "ctrl+u": "page_up",
        "pagedown": "page_down",
        "ctrl+d": "page_down",
    }
)

MOVE_KEYS: Mapping[str, int] = MappingProxyType({"up": -1, "k": -1, "down": 1, "j": 1})


@dataclass(frozen=True)
class Move:
    delta: int


@dataclass(frozen=True)
class Jump:
    to: Literal["first", "last"]


@dataclass(frozen=True)
class Scroll:
    kind: ScrollKind


@dataclass(frozen=True)
class Control:
    action: ControlAction


@dataclass(frozen=True)
class Simple:
    name: Literal["toggle_help", "toggle_log", "quit", "redraw"]


Intent = Union[Move, Jump, Scroll, Control, Simple]

TOGGLE_HELP = Simple("toggle_help")
TOGGLE_LOG = Simple("toggle_log")
QUIT = Simple("quit")
REDRAW = Simple("redraw")

SIMPLE_KEYS: Mapping[str, Simple] = MappingProxyType(
    {"?": TOGGLE_HELP, "enter": TOGGLE_LOG, "q": QUIT, "ctrl+l": REDRAW}
)


class KeyDecoder:
    """Maps key names to intents; tracks the pending ``gg`` chord.

    Keys are Textual key names for special keys (``up``, ``pageup``,
    ``ctrl+a``) and the typed character for printable ones (``g``, ``G``, ``?``).
    """

    def __init__(self, window: float = CHORD_WINDOW) -> None:
        self.window = window
        self.last_key: Optional[str] = None
        self.last_key_time: float = 0.0

    @property
    def chord_pending(self) -> bool:
        return self.last_key is not None

    def reset(self) -> None:
        self.last_key = None
        self.last_key_time = 0.0

    def feed(self, key: str, now: float) -> Optional[Intent]:
        if key == "g":
            if self.last_key == "g" and now - self.last_key_time <= self.window:
                self.reset()
                return Jump("first")
            # lone or late g arms the chord
            self.last_key = "g"
            self.last_key_time = now
            return None

        # any other key, mapped or not, drops a pending chord
        if self.last_key is not None:
            self.reset()
        return self._lookup(key)

    @staticmethod
    def _lookup(key: str) -> Optional[Intent]:
        if key == "G":
            return Jump("last")
        if key in MOVE_KEYS:
            return Move(MOVE_KEYS[key])
        if key in SCROLL_KEYS:
            return Scroll(SCROLL_KEYS[key])
        if key in ACTION_KEYS:
            return Control(ACTION_KEYS[key])
        if key in SIGNAL_KEYS:
            return Control(ControlAction.send_signal(SIGNAL_KEYS[key]))
        if key in SIMPLE_KEYS:
            return SIMPLE_KEYS[key]
        return None
