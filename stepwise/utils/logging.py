"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import re
import sys
from typing import TextIO

import structlog

_REDACTED = "***REDACTED***"

# key=value / "key": "value" pairs whose key names a credential
_SECRET_PAIR = re.compile(
    r"(api[_-]?key|token|secret|password|authorization)[\"']?\s*[:=]\s*[\"']?[\w\-\.]+",
    re.IGNORECASE,
)
# Bare provider keys and bearer tokens that show up in error messages
_SECRET_VALUE = re.compile(r"\b(?:sk-(?:ant-)?[\w\-]{8,}|Bearer\s+[\w\-\.=]+)")

_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "asyncio")


def redact(text: str) -> str:
    """Mask credentials in ``text``."""
    text = _SECRET_VALUE.sub(_REDACTED, text)
    return _SECRET_PAIR.sub(lambda m: f"{m.group(1)}={_REDACTED}", text)


def _redact_values(
    _logger: structlog.types.WrappedLogger,
    _method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact(value)
    return event_dict


def _component(
    _logger: structlog.types.WrappedLogger,
    _method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Replace ``stepwise.core.agent`` style logger names with ``core.agent``."""
    name = event_dict.pop("logger", None)
    if name:
        event_dict["component"] = name.removeprefix("stepwise.")
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog over stdlib logging.

    Log lines go to ``stream`` (stderr by default) so that stdout stays free
    for event streams and plan JSON printed by the CLI. Calling it again
    replaces the previous handler.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        _component,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _redact_values,
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
