"""Structured logging setup using structlog.

Every event passes through :func:`_filter_sensitive`, which redacts API keys
and webhook secrets, masks phone numbers inside WhatsApp JIDs and clips long
chat text.
"""

from __future__ import annotations

import logging
import re
import sys

import structlog

_SECRET_RE = re.compile(
    r"(apikey|api_key|x-webhook-secret|secret|token|authorization)[\"']?\s*[:=]\s*[\"']?[\w\-\.]+",
    re.IGNORECASE,
)

# Phone numbers inside user JIDs keep their last 4 digits; group ids are left alone
_JID_RE = re.compile(r"\b(\d+)(\d{4})(?=(?::\d+)?@(?:s\.whatsapp\.net|c\.us|lid)\b)")

# Fields that may carry message bodies
_TEXT_FIELDS = frozenset({"text", "body", "preview", "reply"})
_TEXT_CLIP = 200

_QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "aiohttp.access", "aiosqlite")


def _mask_jid(match: re.Match[str]) -> str:
    return "*" * len(match.group(1)) + match.group(2)


def _scrub(value: str) -> str:
    value = _SECRET_RE.sub(r"\1=***REDACTED***", value)
    return _JID_RE.sub(_mask_jid, value)


def _filter_sensitive(
    _logger: structlog.types.WrappedLogger,
    _method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    for key, value in list(event_dict.items()):
        if not isinstance(value, str):
            continue
        if key in _TEXT_FIELDS and len(value) > _TEXT_CLIP:
            value = value[:_TEXT_CLIP] + "..."
        event_dict[key] = _scrub(value)
    return event_dict


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Route stdlib and structlog output through one stderr handler."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if numeric_level <= logging.DEBUG:
        print(
            "WARNING: DEBUG logging is enabled. WhatsApp message text may appear in logs.",
            file=sys.stderr,
        )

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            _filter_sensitive,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
