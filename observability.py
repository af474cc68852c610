"""Logging, metrics and tracing setup shared by the API and the cron sweep.

``init_observability(app, service=...)`` configures structlog once per
process. Every event carries the ``service`` name, and values of secret
looking keys (session tokens, gateway credentials, client secrets) are masked
before rendering. CloudWatch Embedded Metrics are re-exported as
``metric_scope``; AWS X-Ray is attached only when the SDK is installed and
``ENABLE_XRAY=1``.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Optional

from aws_embedded_metrics import metric_scope
import structlog

# X-Ray is optional – avoid hard dependency when running locally without AWS
try:
    from aws_xray_sdk.core import xray_recorder, patch  # type: ignore
    from aws_xray_sdk.ext.fastapi.middleware import XRayMiddleware  # type: ignore
except ImportError:  # pragma: no cover
    xray_recorder = None  # type: ignore
    patch = None  # type: ignore
    XRayMiddleware = None  # type: ignore

__all__ = ["init_observability", "metric_scope", "SECRET_KEYS"]

SECRET_KEYS = frozenset(
    {"token", "password", "smtp_password", "store_passwd", "client_secret", "val_id", "authorization", "stripe_signature"}
)
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "stripe")

_configured_service: Optional[str] = None


def _mask_secrets(_logger: Any, _method: str, event_dict: dict) -> dict:
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def _service_tagger(service: str):
    def add_service(_logger: Any, _method: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def _configure_logging(service: str) -> None:
    renderer = (
        structlog.processors.JSONRenderer()
        if os.getenv("LOG_FORMAT", "json").lower() == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _service_tagger(service),
            _mask_secrets,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _attach_tracing(app, service: str) -> bool:
    """Returns True when X-Ray middleware was added to ``app``."""
    if os.getenv("ENABLE_XRAY", "0") != "1":
        return False
    if XRayMiddleware is None:
        structlog.get_logger(__name__).warning("aws_xray_sdk not installed; skipping X-Ray setup")
        return False

    # Trace outbound DB and gateway calls
    patch(["sqlite3", "psycopg2", "httpx"], raise_errors=False)
    if app is None:
        return False
    app.add_middleware(XRayMiddleware, recorder=xray_recorder, segment_name=service)
    return True


def init_observability(app=None, service: str = "jobify-api") -> None:
    """Configure logging for this process (first call wins) and trace ``app``."""
    global _configured_service

    if _configured_service is None:
        _configure_logging(service)
        _configured_service = service
    traced = _attach_tracing(app, service)

    structlog.get_logger(__name__).info("Observability initialized", tracing=traced)
