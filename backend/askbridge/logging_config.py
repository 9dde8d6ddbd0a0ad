"""
Logging setup for the askbridge server.

Every module logs to `askbridge.<area>` in key=value style, e.g.

    2026-10-18 09:12:01  INFO   broker         Question pending  id=tc_3f2a9c1d0b7e length=42

One file per server start under <base>/log/, the newest `logging.keep` kept.
`logging.level` applies to the whole askbridge tree; DEV_MODE adds a coloured
console copy.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Config

ROOT_LOGGER = "askbridge"

# Areas the service logs under; the column is sized to the longest one.
AREAS = ("broker", "queue", "store", "gate", "history", "surface", "server", "tools.ask_user")
AREA_WIDTH = max(len(a) for a in AREAS)

DATE_FMT = "%Y-%m-%d %H:%M:%S"

_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"


def area_of(logger_name: str) -> str:
    """'askbridge.tools.ask_user' -> 'tools.ask_user'; foreign names pass through."""
    prefix = ROOT_LOGGER + "."
    if logger_name.startswith(prefix):
        return logger_name[len(prefix):]
    return logger_name


class AreaFormatter(logging.Formatter):
    """timestamp  LEVEL  area  message. The record itself is left untouched,
    so file and console handlers can format the same record."""

    def __init__(self, color: bool = False) -> None:
        super().__init__(datefmt=DATE_FMT)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<6}"
        if self.color:
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}{_RESET}"
        line = (f"{self.formatTime(record, self.datefmt)}  {level} "
                f"{area_of(record.name):<{AREA_WIDTH}} {record.getMessage()}")
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def resolve_level(name: str) -> "int | None":
    """Numeric level for a `logging.level` setting, or None if unknown."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else None


def prune_logs(log_dir: Path, keep: int) -> int:
    """Delete the oldest run logs so that, with the new one, `keep` remain.

    File names are timestamps, so name order is age order. Returns the count
    removed.
    """
    existing = sorted(log_dir.glob("*.log"))
    stale = existing[: max(0, len(existing) - max(keep, 1) + 1)]
    removed = 0
    for path in stale:
        try:
            path.unlink()
            removed += 1
        except OSError:
            continue
    return removed


def configure_logging(config: "Config") -> Path:
    """Route the askbridge logger tree to a fresh run file (and the console in
    dev mode). Returns the new log file."""
    log_dir = config.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    pruned = prune_logs(log_dir, config.log_keep)
    log_file = log_dir / (datetime.now().strftime("%Y-%m-%d_%H%M%S") + ".log")

    level = resolve_level(config.log_level)
    effective = level if level is not None else logging.INFO

    handlers: list[logging.Handler] = [logging.FileHandler(log_file, encoding="utf-8")]
    handlers[0].setFormatter(AreaFormatter())
    if config.dev_mode:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(AreaFormatter(color=True))
        handlers.append(console)

    logger = logging.getLogger(ROOT_LOGGER)
    for old in list(logger.handlers):
        old.close()
        logger.removeHandler(old)
    for handler in handlers:
        handler.setLevel(effective)
        logger.addHandler(handler)
    logger.setLevel(effective)
    logger.propagate = False

    # Libraries (uvicorn, asyncio) only surface warnings
    logging.getLogger().setLevel(logging.WARNING)

    log = logging.getLogger(ROOT_LOGGER + ".server")
    if level is None:
        log.warning("Unknown logging.level=%r, using INFO", config.log_level)
    log.info("Logging configured  level=%s keep=%d pruned=%d file=%s",
             logging.getLevelName(effective), config.log_keep, pruned, log_file.name)
    return log_file
