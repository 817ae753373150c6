"""
Structured logging configuration using structlog.

Webhook handling is asynchronous and provider-driven, so every log line needs
enough context to correlate a delivery with the organization it touched.
Field names follow Datadog standard attributes:
    - trace_id: Request correlation ID (bound per request by middleware)
    - organization.id: Organization/tenant identifier
    - billing.provider: Payment provider that sent the event
    - evt.name: Provider event type

Usage:
    from apps.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("subscription_synced", organization_id="...", status="active")

See: https://docs.datadoghq.com/logs/log_configuration/attributes_naming_convention/
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# Keyword arguments used at call sites -> Datadog attribute names
_FIELD_RENAMES = {
    "correlation_id": "trace_id",
    "organization_id": "organization.id",
    "provider": "billing.provider",
    "event_type": "evt.name",
}


def _rename_datadog_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Rename call-site keyword arguments to Datadog standard attributes.

    Values are stringified so UUIDs and enums render consistently.
    """
    for source, target in _FIELD_RENAMES.items():
        if source in event_dict:
            event_dict[target] = str(event_dict.pop(source))
    return event_dict


def configure_logging(json_format: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog for the application.

    Uses stdlib integration so Django, stripe and httpx log records pass
    through the same renderer.

    Args:
        json_format: If True, output JSON (production). If False, pretty console output.
        log_level: Minimum log level to output.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _rename_datadog_fields,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current context.

    Bound values appear on every log line emitted by the current thread or
    task until cleared.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """
    Clear all bound context variables.

    Called at the end of each request so context never leaks between
    webhook deliveries served by the same worker.
    """
    structlog.contextvars.clear_contextvars()
