from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from textual.logging import TextualHandler

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_bin(env: Mapping[str, str], var: str, default: str) -> str:
    """Resolve a tool binary. Honors the env override, falls back to PATH lookup."""
    prefer = env.get(var, default).strip() or default
    if os.path.sep in prefer:
        return prefer
    which = shutil.which(prefer)
    return which or prefer


def _float_env(env: Mapping[str, str], var: str, default: float) -> float:
    raw = env.get(var, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring %s=%r: not a number", var, raw)
        return default
    if value <= 0:
        logger.warning("ignoring %s=%r: must be positive", var, raw)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    svstat_bin: str = "s6-svstat"
    svc_bin: str = "s6-svc"
    tail_bin: str = "tail"
    poll_interval: float = 1.0
    debounce: float = 0.5
    log_file: Optional[Path] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            env = os.environ
        log_file = env.get("S6DASH_LOG_FILE", "").strip()
        return cls(
            svstat_bin=_resolve_bin(env, "S6DASH_SVSTAT_BIN", "s6-svstat"),
            svc_bin=_resolve_bin(env, "S6DASH_SVC_BIN", "s6-svc"),
            tail_bin=_resolve_bin(env, "S6DASH_TAIL_BIN", "tail"),
            poll_interval=_float_env(env, "S6DASH_POLL_INTERVAL", 1.0),
            debounce=_float_env(env, "S6DASH_DEBOUNCE", 0.5),
            log_file=Path(log_file) if log_file else None,
            log_level=(env.get("S6DASH_LOG_LEVEL", "").strip() or "INFO").upper(),
        )


def setup_logging(settings: Settings) -> None:
    # The TUI owns the terminal; records go to the Textual console, and to a file if asked.
    handlers: list[logging.Handler] = [TextualHandler()]
    if settings.log_file is not None:
        fh = logging.FileHandler(settings.log_file)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(fh)
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, handlers=handlers, force=True)
