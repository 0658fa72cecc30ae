"""Thin async wrappers around the s6 command-line tools.

The dashboard never talks to s6-supervise directly: status comes from
``s6-svstat``, control requests go through ``s6-svc`` and logs are followed
with ``tail -F`` on the service's ``current`` log file.
"""

from __future__ import annotations

import asyncio
import logging
from asyncio.subprocess import PIPE
from datetime import timedelta
from pathlib import Path
from typing import AsyncIterator, Optional

from .dash.models import ControlAction, ServiceRef, StatusRecord

logger = logging.getLogger(__name__)

SVSTAT_FIELDS = ("up", "wantedup", "pid", "exitcode", "signal", "updownfor", "ready", "readyfor")

LOG_CANDIDATES = (
    Path("log") / "current",
    Path("log") / "main" / "current",
    Path("current"),
)

# Longest log line kept whole; longer lines are truncated to this many bytes
LINE_LIMIT = 1024 * 1024

_TRUE = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE = {"0", "f", "F", "false", "FALSE", "False"}


class SupervisorError(Exception):
    """A collaborator call failed; the message is shown to the operator as-is."""


class StatusError(SupervisorError):
    pass


class ControlError(SupervisorError):
    pass


class LogOpenError(SupervisorError):
    pass


def parse_bool(value: str, field: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise StatusError(f"error parsing {field} field: {value!r}")


def _parse_int(value: str, field: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise StatusError(f"error parsing {field} field: {value!r}") from None


def parse_svstat(output: str) -> StatusRecord:
    """Parse one line of ``s6-svstat -o`` output into a StatusRecord.

    Short or malformed output is rejected as a whole.
    """
    fields = output.split()
    if len(fields) != len(SVSTAT_FIELDS):
        raise StatusError(f"unexpected output from s6-svstat: {output.strip()!r}")
    up, wanted_up, pid, exit_code, sig, updown_for, ready, ready_for = fields
    return StatusRecord(
        up=parse_bool(up, "up"),
        wanted_up=parse_bool(wanted_up, "wantedup"),
        pid=_parse_int(pid, "pid"),
        exit_code=_parse_int(exit_code, "exitcode"),
        signal=sig,
        up_for=timedelta(seconds=_parse_int(updown_for, "updownfor")),
        ready=parse_bool(ready, "ready"),
        ready_for=timedelta(seconds=_parse_int(ready_for, "readyfor")),
    )


def svstat_argv(ref: ServiceRef, svstat_bin: str = "s6-svstat") -> list[str]:
    return [svstat_bin, "-o", ",".join(SVSTAT_FIELDS), str(ref.path)]


def svc_argv(ref: ServiceRef, action: ControlAction, svc_bin: str = "s6-svc") -> list[str]:
    return [svc_bin, *action.svc_flags(), str(ref.path)]


async def query_status(ref: ServiceRef, svstat_bin: str = "s6-svstat") -> StatusRecord:
    try:
        proc = await asyncio.create_subprocess_exec(
            *svstat_argv(ref, svstat_bin), stdout=PIPE, stderr=PIPE
        )
    except OSError as e:
        raise StatusError(f"error running s6-svstat: {e}") from e
    out, err = await proc.communicate()
    if proc.returncode != 0:
        detail = (err or out).decode(errors="ignore").strip()
        raise StatusError(f"error running s6-svstat: exit {proc.returncode} ({detail})")
    return parse_svstat(out.decode(errors="ignore"))


async def send_control(ref: ServiceRef, action: ControlAction, svc_bin: str = "s6-svc") -> None:
    argv = svc_argv(ref, action, svc_bin)
    try:
        proc = await asyncio.create_subprocess_exec(*argv, stdout=PIPE, stderr=PIPE)
    except OSError as e:
        raise ControlError(f"error running s6-svc: {e}") from e
    _out, err = await proc.communicate()
    if proc.returncode != 0:
        detail = err.decode(errors="ignore").strip()
        raise ControlError(f"s6-svc {action} failed: exit {proc.returncode} ({detail})")


def locate_log(ref: ServiceRef) -> Path:
    for rel in LOG_CANDIDATES:
        p = ref.path / rel
        if p.is_file():
            return p
    raise LogOpenError(f"no log file found under {ref.path}")


class TailFollower:
    """Follow handle over a ``tail -F`` subprocess.

    Yields lines (without trailing newline) from the start of the file and then
    forever, until stop() is called. A line longer than ``limit`` bytes is cut
    to ``limit`` and marked ``[truncated]``; the stream carries on after it.
    """

    def __init__(self, proc: asyncio.subprocess.Process, path: Path, limit: int = LINE_LIMIT) -> None:
        self.proc = proc
        self.path = path
        self.limit = limit

    async def _read_line(self, stream: asyncio.StreamReader) -> bytes:
        try:
            return await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            return e.partial
        except asyncio.LimitOverrunError as e:
            head = await stream.read(e.consumed)
        # drop the rest of the oversized line
        while True:
            try:
                await stream.readuntil(b"\n")
                break
            except asyncio.IncompleteReadError:
                break
            except asyncio.LimitOverrunError as e:
                await stream.read(e.consumed)
        logger.debug("%s: line over %d bytes truncated", self.path, self.limit)
        return head[: self.limit] + b" [truncated]"

    async def lines(self) -> AsyncIterator[str]:
        assert self.proc.stdout is not None
        while True:
            b = await self._read_line(self.proc.stdout)
            if not b:
                break
            yield b.decode(errors="ignore").rstrip("\r\n")

    def stop(self) -> None:
        if self.proc.returncode is None:
            try:
                self.proc.terminate()
            except ProcessLookupError:
                pass

    async def wait(self) -> Optional[int]:
        return await self.proc.wait()


async def open_log_follow(ref: ServiceRef, tail_bin: str = "tail", limit: int = LINE_LIMIT) -> TailFollower:
    path = locate_log(ref)
    try:
        proc = await asyncio.create_subprocess_exec(
            tail_bin,
            "-n",
            "+1",
            "-F",
            str(path),
            stdout=PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            limit=limit,
        )
    except OSError as e:
        raise LogOpenError(f"error running {tail_bin}: {e}") from e
    logger.debug("following %s (pid %s)", path, proc.pid)
    return TailFollower(proc, path, limit=limit)
