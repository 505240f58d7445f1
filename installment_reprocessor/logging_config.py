"""structlog setup for the reprocessor.

Every module logs through get_logger(__name__) with snake_case event names.
Durations and timestamps in event values are rendered as ISO 8601 strings,
so reprocessing intervals read the same in logs as in reprocessing.yaml.
"""

import logging
import os
import sys
from datetime import date, datetime, timedelta
from typing import Any

import structlog
from structlog.typing import EventDict, Processor

from installment_reprocessor.utils.durations import format_duration

APP_NAME = "installment-reprocessor"


def log_settings_from_env() -> tuple[str, bool]:
    """Read LOG_LEVEL and LOG_FORMAT.

    Returns:
        (log level name, True for JSON output)
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    return log_level, json_format


def is_debug_mode() -> bool:
    return log_settings_from_env()[0] == "DEBUG"


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = APP_NAME
    return event_dict


def _render_value(value: Any) -> Any:
    if isinstance(value, timedelta):
        try:
            return format_duration(value)
        except ValueError:
            # negative or sub-minute
            return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def render_temporal_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Render timedelta values as ISO durations and datetimes as ISO timestamps."""
    for key, value in event_dict.items():
        if key != "timestamp":
            event_dict[key] = _render_value(value)
    return event_dict


def drop_debug_events(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop DEBUG events unless LOG_LEVEL is DEBUG."""
    if method_name == "debug" and not is_debug_mode():
        raise structlog.DropEvent
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    include_timestamp: bool = True,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines if True, colored console output otherwise
        include_timestamp: Add a UTC ISO 8601 timestamp to each event
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        render_temporal_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if level > logging.DEBUG:
        processors.append(drop_debug_events)

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every following log event in this context.

    Example:
        bind_context(installment_id="inst_abc", subscription_id="sub_123")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
