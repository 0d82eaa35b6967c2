"""JSON logging on stderr; stdout carries command output only."""
from __future__ import annotations

import logging
import sys

import structlog

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def configure_logging(level: str | None = None) -> None:
    """Route structlog events to stderr as JSON.

    Each record has ``ts``, ``level``, ``msg`` and ``component`` (the logger
    name) plus whatever context the caller bound, such as key ids or ring
    paths. Unknown level names fall back to ``info``.
    """
    threshold = _LEVELS.get((level or "info").lower(), logging.INFO)
    logging.basicConfig(
        level=threshold,
        handlers=[logging.StreamHandler(sys.stderr)],
        format="%(message)s",
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", key="ts"),
            structlog.stdlib.add_log_level,
            _add_component,
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        cache_logger_on_first_use=True,
    )


def _add_component(logger, _method: str, event_dict: dict) -> dict:
    event_dict.setdefault("component", getattr(logger, "name", None) or "pgp_guardian")
    return event_dict


__all__ = ["configure_logging"]
