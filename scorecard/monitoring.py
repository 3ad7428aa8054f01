import logging
import os
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from scorecard.db import AnalyticsEvent, get_session

_logger = logging.getLogger("scorecard")
_initialized = False

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
NOISY_LOGGERS = ("httpx", "apscheduler", "sqlalchemy.engine")


def _sentry_options(dsn: str) -> Dict[str, Any]:
    return {
        "dsn": dsn,
        "integrations": [LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        "traces_sample_rate": float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        "environment": os.getenv("SENTRY_ENVIRONMENT", os.getenv("ENVIRONMENT", "development")),
        "release": os.getenv("SCORECARD_RELEASE"),
        # submissions carry visitor emails
        "send_default_pii": False,
    }


def init_monitoring() -> None:
    """Configure logging once per process and start Sentry if a DSN is set."""
    global _initialized
    if _initialized:
        return

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    dsn = os.getenv("SENTRY_DSN")
    if dsn:
        sentry_sdk.init(**_sentry_options(dsn))
        _logger.info("Sentry initialized")
    else:
        _logger.info("Sentry DSN not provided; skipping initialization")

    _initialized = True


async def record_event(event: str, payload: Optional[Dict[str, Any]] = None) -> bool:
    """Store an analytics event. Failures are logged and never raised."""
    try:
        async with get_session() as session:
            session.add(AnalyticsEvent(event=event, payload=payload or {}))
            await session.commit()
    except Exception as exc:
        _logger.warning("Failed to record analytics event %s: %s", event, exc)
        return False
    return True


def capture_exception(exc: BaseException) -> None:
    _logger.error("Exception captured", exc_info=exc)
    if sentry_sdk.get_client().is_active():
        sentry_sdk.capture_exception(exc)
