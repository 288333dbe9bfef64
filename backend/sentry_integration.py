"""
Tax Estimator - Sentry Integration

Error tracking with Sentry. Disabled unless a DSN is configured.
"""

import os
import logging
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

# Keys whose values never leave the process: taxpayer amounts and identifiers
SENSITIVE_KEYS = [
    "password", "token", "secret", "authorization", "cookie",
    "salary", "income", "tfn", "premium",
]

_initialized = False


def init_sentry(
    dsn: Optional[str] = None,
    environment: str = "development",
    release: Optional[str] = None,
    sample_rate: float = 1.0,
    traces_sample_rate: float = 0.1,
) -> bool:
    """
    Initialize Sentry error tracking.

    Args:
        dsn: Sentry DSN (from environment if not provided)
        environment: Environment name (production, staging, development)
        release: Release version
        sample_rate: Error sampling rate (0.0 to 1.0)
        traces_sample_rate: Performance tracing sample rate

    Returns:
        True if Sentry was initialized, False otherwise
    """
    global _initialized

    dsn = dsn or os.environ.get("SENTRY_DSN", "")

    if not dsn:
        logger.info("Sentry DSN not configured. Error tracking disabled.")
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release or os.environ.get("GIT_SHA", "unknown"),
            sample_rate=sample_rate,
            traces_sample_rate=traces_sample_rate,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(
                    level=logging.INFO,
                    event_level=logging.ERROR
                ),
            ],
            send_default_pii=False,
            before_send=filter_sensitive_data,
            ignore_errors=[
                ConnectionResetError,
                BrokenPipeError,
            ],
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    _initialized = True
    logger.info(f"Sentry initialized for environment: {environment}")
    return True


def redact(data: Any) -> Any:
    """Replace values of sensitive keys (recursively) with [REDACTED]."""
    if isinstance(data, list):
        return [redact(item) for item in data]
    if not isinstance(data, dict):
        return data

    result = {}
    for key, value in data.items():
        if any(s in str(key).lower() for s in SENSITIVE_KEYS):
            result[key] = "[REDACTED]"
        else:
            result[key] = redact(value)
    return result


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Filter sensitive data from Sentry events.
    """
    request = event.get("request")
    if isinstance(request, dict):
        if "headers" in request:
            request["headers"] = redact(request["headers"])
        if "data" in request:
            # Request bodies are tax documents
            request["data"] = "[REDACTED]"

    if "extra" in event:
        event["extra"] = redact(event["extra"])

    return event


def capture_exception(exception: Exception, **kwargs) -> Optional[str]:
    """
    Capture an exception to Sentry.

    Args:
        exception: The exception to capture
        **kwargs: Additional context

    Returns:
        Event ID if captured, None otherwise
    """
    if not _initialized:
        return None

    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in kwargs.items():
                scope.set_extra(key, value)
            return sentry_sdk.capture_exception(exception)
    except Exception as e:
        logger.error(f"Failed to capture exception to Sentry: {e}")
        return None


def set_tag(key: str, value: str):
    """Set a tag for Sentry."""
    if _initialized:
        sentry_sdk.set_tag(key, value)
