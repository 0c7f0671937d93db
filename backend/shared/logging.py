"""structlog setup shared by the arena server and its tests.

structlog events are rendered by stdlib logging handlers, so uvicorn's own
loggers and ours end up in the same stream and the same file.

Environment:
- LOG_FORMAT: "json" for one JSON object per line, "console" (or unset) for
  human-readable output.
- LOG_LEVEL: a stdlib level name, INFO when unset.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_LOG_FORMATS = ("json", "console", "")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# uvicorn installs its own handlers; these are re-routed through the root logger.
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def serialize_enums(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Log sides, statuses and error codes by their plain value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def shared_processors() -> list[Any]:
    """Processors run on every structlog event before it reaches stdlib logging."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        serialize_enums,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]


def _is_test() -> bool:
    return "pytest" in sys.modules


@dataclass(frozen=True)
class LogOptions:
    json: bool
    level: int

    @classmethod
    def from_env(cls) -> LogOptions:
        log_format = os.environ.get("LOG_FORMAT", "").lower()
        if log_format not in _LOG_FORMATS:
            raise ValueError(f"Invalid LOG_FORMAT={log_format!r}. Must be 'json', 'console', or unset.")
        level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
        if level_name not in _LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL={level_name!r}. Must be one of {', '.join(_LOG_LEVELS)}.")
        return cls(json=log_format == "json", level=getattr(logging, level_name))

    def formatter(self, *, colors: bool = False) -> logging.Formatter:
        # format_exc_info runs here so each handler renders a traceback once.
        renderer = structlog.processors.JSONRenderer() if self.json else structlog.dev.ConsoleRenderer(colors=colors)
        return structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )


def _open_log_file(log_dir: Path | str, options: LogOptions) -> tuple[logging.Handler, Path]:
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    handler = logging.FileHandler(path)
    handler.setFormatter(options.formatter())
    return handler, path


def setup_logging(log_dir: Path | str | None = None, level: int | None = None) -> Path | None:
    """Route structlog and uvicorn through the root logger.

    Output always goes to stdout. When log_dir is given (outside of pytest) a
    timestamped file is opened there as well and its path returned.
    """
    options = LogOptions.from_env()

    structlog.configure(
        processors=shared_processors(),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.setLevel(options.level if level is None else level)
    root.handlers.clear()
    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(options.formatter(colors=sys.stdout.isatty()))
    root.addHandler(console)

    if log_dir is None or _is_test():
        return None
    file_handler, path = _open_log_file(log_dir, options)
    root.addHandler(file_handler)
    return path
