"""loguru sinks for cloudpath.

Every module logs through ``logger.bind(component=...)``. The package is
silent until an application opts in:

    ids = setup_logging(LogConfig(level="DEBUG", file="cloudpath.log"))
    ...
    teardown_logging(ids)

Only records emitted by cloudpath reach the sinks added here, and the
host application's own loguru configuration is left untouched.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

PACKAGE = "cloudpath"

logger.disable(PACKAGE)

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "<level>{level: <7}</level> "
    "<cyan>[{extra[component]}]</cyan> {message}"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DDTHH:mm:ss.SSSZZ} {level: <7} [{extra[component]}] "
    "{name}:{line} {message}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Where cloudpath logs and how verbosely.

    ``level`` applies to stderr only; the file sink always keeps DEBUG
    records so a support bundle has the full retry and paging history.
    ``rotation`` and ``retention`` use loguru's syntax ("50 MB", "1 day",
    or a file count).
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def _cloudpath_only(record: Record) -> bool:
    name = record["name"] or ""
    if name != PACKAGE and not name.startswith(f"{PACKAGE}."):
        return False
    record["extra"].setdefault("component", "-")
    return True


def setup_logging(config: LogConfig) -> list[int]:
    """Enable cloudpath logging. Returns handler ids for ``teardown_logging``."""
    sinks: list[dict[str, Any]] = []
    if config.console:
        sinks.append({
            "sink": sys.stderr,
            "level": config.level,
            "format": CONSOLE_FORMAT,
            "colorize": True,
        })
    if config.file:
        sinks.append({
            "sink": config.file,
            "level": "DEBUG",
            "format": FILE_FORMAT,
            "rotation": config.rotation,
            "retention": config.retention,
            "compression": "zip",
            "diagnose": False,  # tracebacks may hold bearer tokens
            "enqueue": True,
        })

    logger.enable(PACKAGE)
    return [logger.add(filter=_cloudpath_only, **sink) for sink in sinks]


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable(PACKAGE)
