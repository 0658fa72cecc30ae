from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Literal, Optional


@dataclass(frozen=True, slots=True, order=True)
class ServiceRef:
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True, slots=True)
class StatusRecord:
    up: bool = False
    wanted_up: bool = False
    ready: bool = False
    pid: int = -1
    exit_code: int = -1
    signal: str = "NA"
    up_for: timedelta = timedelta(0)
    ready_for: timedelta = timedelta(0)
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "StatusRecord":
        return cls(error=error)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One coalesced poll cycle: every service paired with its fresh record."""

    rows: tuple[tuple[ServiceRef, StatusRecord], ...]
    taken_at: float


ActionKind = Literal["up", "down", "restart", "signal"]


@dataclass(frozen=True, slots=True)
class ControlAction:
    kind: ActionKind
    signum: Optional[int] = None

    @classmethod
    def send_signal(cls, signum: int) -> "ControlAction":
        return cls("signal", int(signum))

    def svc_flags(self) -> list[str]:
        if self.kind == "up":
            return ["-u"]
        if self.kind == "down":
            return ["-d"]
        if self.kind == "restart":
            return ["-r"]
        if self.signum is None:
            raise ValueError("signal action without a signal number")
        return ["-s", str(self.signum)]

    def __str__(self) -> str:
        if self.kind == "signal":
            return f"signal {self.signum}"
        return self.kind


UP = ControlAction("up")
DOWN = ControlAction("down")
RESTART = ControlAction("restart")


@dataclass(slots=True)
class AppState:
    root: Path
    services: list[ServiceRef] = field(default_factory=list)
    selected_index: int = 0
    log_visible: bool = False
    help_visible: bool = False
    rows: list[str] = field(default_factory=list)

    def selected(self) -> Optional[ServiceRef]:
        if 0 <= self.selected_index < len(self.services):
            return self.services[self.selected_index]
        return None
