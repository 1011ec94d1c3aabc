"""Logging configuration for SCIM Bridge using structlog.

structlog events are handed to stdlib logging and rendered per handler:
human-readable on the console through rich, JSON (or plain text) in the
diagnostic log file. Credential material is redacted before any handler
sees an event.

The batch status lines printed by the result sink are not log events and
never pass through here.
"""

import json
import logging
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler
from structlog.typing import EventDict, WrappedLogger

from scim_migration import __version__

APP_NAME = "scim-bridge"

REDACTED = "[REDACTED]"

# Keys whose values never reach the logs (case-insensitive substring match)
SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "salt",
        "token",
        "authorization",
        "client_assertion",
        "private_key",
        "secret",
        "role_id",
    }
)


def _is_sensitive(key: Any) -> bool:
    key = str(key).lower()
    return any(field in key for field in SENSITIVE_FIELDS)


def _add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = APP_NAME
    event_dict["version"] = __version__
    return event_dict


def redact_sensitive(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Processor that redacts credential values passed as event keys."""
    for key, value in event_dict.items():
        if key == "event":
            continue
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        elif isinstance(value, (dict, list)):
            event_dict[key] = sanitize_payload(value)
    return event_dict


# Run for structlog events and for records from plain stdlib loggers (httpx, hvac)
_PRE_CHAIN: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    _add_app_context,
    redact_sensitive,
]


def _formatter(renderer: Any, *extra: Any) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_PRE_CHAIN,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *extra, renderer],
    )


def configure_logging(
    level: str = "WARNING",
    log_format: str = "json",
    log_file: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structured logging for the application.

    May be called again once the configuration file is loaded; handlers
    from the previous call are replaced.

    Args:
        level: Console log level. Default WARNING keeps batch status lines readable
        log_format: Diagnostic file format, 'json' or 'console'
        log_file: Optional path to the diagnostic log file
        file_level: File log level (defaults to DEBUG)
    """
    console_level = getattr(logging, level.upper(), logging.WARNING)
    file_log_level = getattr(logging, (file_level or "DEBUG").upper(), logging.DEBUG)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers do the filtering
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,  # structlog already adds timestamps
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(console_level)
    rich_handler.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=False)))
    root_logger.addHandler(rich_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        if log_format == "json":
            file_formatter = _formatter(
                structlog.processors.JSONRenderer(default=str),
                structlog.processors.format_exc_info,
            )
        else:
            file_formatter = _formatter(structlog.dev.ConsoleRenderer(colors=False))

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(file_log_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *_PRE_CHAIN,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger; use ``get_logger(__name__)`` at module level."""
    return structlog.get_logger(name)


def log_api_request(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    url: str,
    status_code: int,
    duration_ms: float,
) -> None:
    """Log a completed HTTP exchange; error statuses are logged as warnings."""
    level = logging.WARNING if status_code >= 400 else logging.INFO
    logger.log(
        level,
        "api_request_completed",
        method=method,
        url=url,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
    )


def log_migration_progress(
    logger: structlog.stdlib.BoundLogger,
    completed: int,
    total: int,
    **extra: Any,
) -> None:
    """Log how many batches of the run have finished.

    Args:
        logger: Logger instance
        completed: Number of batches finished (any state)
        total: Total number of batches
        **extra: Additional context to log
    """
    percentage = (completed / total * 100) if total > 0 else 0

    logger.info(
        "migration_progress",
        completed=completed,
        total=total,
        percentage=round(percentage, 2),
        **extra,
    )


def sanitize_payload(payload: Any, max_depth: int = 10) -> Any:
    """Return a copy of a request/response payload with credential values redacted.

    The whole ``hashedPassword`` block of a SCIM user is redacted, as are
    tokens and the client assertion of an STS request.
    """
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(payload, dict):
        return {
            key: REDACTED if _is_sensitive(key) else sanitize_payload(value, max_depth - 1)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [sanitize_payload(item, max_depth - 1) for item in payload]
    return payload


def truncate_payload(payload: Any, max_size: int = 10000) -> str:
    """Render a payload as JSON text, cut to ``max_size`` characters."""
    try:
        text = json.dumps(payload, indent=2, default=str)
    except (TypeError, ValueError):
        text = str(payload)

    if len(text) > max_size:
        return text[:max_size] + f"\n... [TRUNCATED - {len(text)} total chars]"
    return text


def should_log_payloads(log_payloads_enabled: bool) -> bool:
    """Payloads are logged only when enabled and some handler accepts DEBUG."""
    if not log_payloads_enabled:
        return False
    return any(handler.level <= logging.DEBUG for handler in logging.getLogger().handlers)
