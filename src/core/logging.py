"""Structured logging system built on Loguru.

Features:
- **Structured logging**: JSON output with consistent schema outside development
- **Context propagation**: Request-scoped fields bound with ``contextualize``
- **Standard library integration**: uvicorn and library logs are forwarded
- **Readable console output**: Development formatting with inline context

Formatter types:
- **console**: Human-readable with inline context (development)
- **json**: One JSON object per line, suited to container log collectors
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Final, Protocol, cast

from loguru import logger


class _LoggingState:
    """Simple state holder to track if logging has been configured."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str:
        """Logging level."""
        ...

    @property
    def log_formatter_type(self) -> str | None:
        """Log formatter type."""
        ...

    @property
    def sensitive_fields(self) -> list[str]:
        """Field names whose values are redacted in console output."""
        ...


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def environment(self) -> str:
        """Deployment environment name."""
        ...

    @property
    def log_config(self) -> LogConfigProtocol:
        """Log configuration."""
        ...


DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
MAX_FIELD_VALUE_LENGTH: Final[int] = 100
UVICORN_LOGGERS: Final[tuple[str, ...]] = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Fields shown first, in this order, by the console formatter
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
)


def _escape(value: object) -> str:
    """Escape braces so Loguru does not treat them as format fields."""
    return str(value).replace("{", "{{").replace("}", "}}")


def _format_context_fields(extra: dict[str, Any], sensitive: set[str]) -> list[str]:
    """Format all context fields from extra data.

    Args:
        extra: Extra fields from the log record.
        sensitive: Lowercased field names whose values must be hidden.

    Returns:
        list[str]: List of formatted context parts.
    """
    parts = []
    for field in PRIORITY_FIELDS:
        value = extra.get(field)
        if value is None:
            continue
        if field == "duration_ms":
            value = f"{value}ms"
        parts.append(f"<yellow>{_escape(value)}</yellow>")

    for key, value in extra.items():
        if key in PRIORITY_FIELDS or key.startswith("_") or value is None:
            continue
        str_value = "[REDACTED]" if key.lower() in sensitive else str(value)
        if len(str_value) > MAX_FIELD_VALUE_LENGTH:
            str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
        parts.append(f"<dim>{_escape(key)}={_escape(str_value)}</dim>")
    return parts


def make_console_formatter(sensitive_fields: list[str]) -> Any:  # noqa: ANN401
    """Build the development console formatter.

    Args:
        sensitive_fields: Field names whose values are redacted.

    Returns:
        Any: A Loguru format callable.
    """
    sensitive = {field.lower() for field in sensitive_fields}

    def format_console_with_context(record: dict[str, Any]) -> str:
        try:
            parts = [
                f"<green>{record['time'].strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]}</green>",
                f"<level>{record['level'].name: <8}</level>",
                f"<cyan>{record['name']}:{record['function']}:{record['line']}</cyan>",
            ]
            context_parts = _format_context_fields(record.get("extra", {}), sensitive)
            if context_parts:
                parts.append(" ".join(f"[{part}]" for part in context_parts))
            parts.append(_escape(record.get("message", "")))
            if record.get("exception"):
                parts.append("\n{exception}")
            return " | ".join(parts) + "\n"
        except (AttributeError, TypeError, ValueError, KeyError):
            return DEFAULT_LOG_FORMAT + "\n{exception}"

    return format_console_with_context


def serialize_for_json(record: dict[str, Any]) -> str:
    """Format a log record as a single JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if extra := record.get("extra", {}):
        log_entry.update({k: v for k, v in extra.items() if not k.startswith("_")})

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def build_uvicorn_log_config() -> dict[str, Any]:
    """Build the dictConfig that routes uvicorn loggers through Loguru.

    Returns:
        dict[str, Any]: A ``logging.config.dictConfig`` compatible mapping.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {
                "class": "src.core.logging.InterceptHandler",
            },
        },
        "loggers": {
            name: {"handlers": ["default"], "level": "INFO", "propagate": False}
            for name in UVICORN_LOGGERS
        },
    }


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru sinks once per process.

    Args:
        settings: Application settings containing log configuration.
    """
    if _state.configured:
        return

    logger.remove()

    log_config = settings.log_config
    formatter_type = log_config.log_formatter_type or (
        "console" if settings.environment == "development" else "json"
    )

    if formatter_type == "console":
        logger.add(
            sys.stdout,
            format=cast("Any", make_console_formatter(log_config.sensitive_fields)),
            level=log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=False,
            backtrace=True,
        )
    else:

        def structured_sink(message: object) -> None:
            """Custom sink that formats and writes structured logs."""
            if hasattr(message, "record"):
                sys.stdout.write(serialize_for_json(message.record))
                sys.stdout.flush()

        logger.add(
            structured_sink,
            level=log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        log_level=log_config.log_level,
    )
    _state.configured = True


def flush_logs() -> None:
    """Block until every enqueued log message has been written."""
    logger.complete()
