"""Process-level logging for fschat.

A single loguru sink is installed per process. Every record carries the
connection phase in ``extra["phase"]`` so log lines can be read against
reconnects.
"""

from __future__ import annotations

import os
import sys
from typing import Any, Literal

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

NO_PHASE = "-"

_FORMATS: dict[LogProfile, str] = {
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {extra[phase]:<12} | {name}:{line} | {message}",
    "chat": "[{extra[phase]}] {message}",
}

_active: tuple[LogProfile, str] | None = None
_phase = NO_PHASE


def _sink(profile: LogProfile) -> Any:
    if profile == "chat":
        # Log lines go to stderr, never into the rendered conversation.
        return RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )
    return sys.stderr


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Install the sink for `profile`; repeated calls with the same arguments are no-ops."""
    global _active

    level = (level or os.getenv("FSCHAT_LOG_LEVEL", "INFO")).upper()
    if _active == (profile, level):
        return

    logger.configure(
        handlers=[
            {
                "sink": _sink(profile),
                "level": level,
                "format": _FORMATS[profile],
                "backtrace": False,
                "diagnose": False,
            }
        ],
        extra={"phase": _phase},
    )
    _active = (profile, level)


def set_phase(phase: str) -> None:
    """Tag subsequent records with the current connection phase."""
    global _phase

    _phase = str(phase)
    logger.configure(extra={"phase": _phase})
