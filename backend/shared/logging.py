"""structlog setup for the zombies stats service.

Output format and threshold come from the environment:
- LOG_FORMAT: "json" for log aggregation; "console" or unset for readable output.
- LOG_LEVEL: DEBUG, INFO (default), WARNING, ERROR or CRITICAL, any case.

Events from the repository and orchestrator carry datetimes and nested
payload dicts, so values are flattened to JSON-friendly forms before
rendering.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import field_validator
from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_PREFIX = "zombies"
LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

# run before the renderer on every handler; tracebacks are formatted once, here
_RENDER_PREFIX = (
    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    structlog.processors.format_exc_info,
)


class LoggingSettings(BaseSettings):
    log_format: Literal["json", "console", ""] = ""
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("log_format", mode="before")
    @classmethod
    def lowercase_format(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @property
    def json_mode(self) -> bool:
        return self.log_format == "json"

    @property
    def level(self) -> int:
        return getattr(logging, self.log_level)


def _plain(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _serialize_values(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Render Enum and datetime values (one level deep) as plain JSON-friendly values."""
    for key, value in event_dict.items():
        if isinstance(value, dict):
            event_dict[key] = {k: _plain(v) for k, v in value.items()}
        else:
            event_dict[key] = _plain(value)
    return event_dict


def _is_test() -> bool:
    return "pytest" in sys.modules


def _handler(handler: logging.Handler, *, json_mode: bool, colors: bool) -> logging.Handler:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processors=[*_RENDER_PREFIX, renderer]))
    return handler


def log_file_path(log_dir: Path | str, now: datetime | None = None) -> Path:
    """Timestamped log file inside log_dir, e.g. zombies_2025-03-15_10-30-45.log."""
    stamp = (now or datetime.now(tz=UTC)).strftime(LOG_FILE_TIMESTAMP_FORMAT)
    return Path(log_dir) / f"{LOG_FILE_PREFIX}_{stamp}.log"


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Route structlog through the stdlib root logger, to stdout and optionally a file.

    Returns the log file path when one was opened. No file is opened under
    pytest.
    """
    settings = LoggingSettings()
    if level is None:
        level = settings.level

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(
        _handler(logging.StreamHandler(sys.stdout), json_mode=settings.json_mode, colors=sys.stdout.isatty()),
    )

    if log_dir is None or _is_test():
        return None

    file_path = log_file_path(log_dir)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    root.addHandler(_handler(logging.FileHandler(file_path), json_mode=settings.json_mode, colors=False))
    return file_path
