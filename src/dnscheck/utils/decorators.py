"""Decorators for error reporting and Sentry setup."""

import asyncio
import functools
import logging
from typing import Callable, Optional, TypeVar

import sentry_sdk
from fastapi import HTTPException

from dnscheck.core.config import Settings, get_settings

F = TypeVar("F", bound=Callable)

logger = logging.getLogger(__name__)


def _report(exc: Exception) -> None:
    # 4xx responses from route handlers are not reported
    if isinstance(exc, HTTPException) and exc.status_code < 500:
        return

    if get_settings().sentry_dsn:
        sentry_sdk.capture_exception(exc)


def sentry_exception_catcher(func: F) -> F:
    """
    Report exceptions escaping ``func`` to Sentry, then re-raise them.

    Works with both sync and async functions. Nothing is sent unless
    SENTRY_DSN is set.
    """
    if asyncio.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                _report(e)
                raise

        return async_wrapper  # type: ignore

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            _report(e)
            raise

    return sync_wrapper  # type: ignore


def init_sentry(settings: Optional[Settings] = None) -> bool:
    """Initialize Sentry SDK if configured. Returns True when enabled."""
    settings = settings or get_settings()

    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
    )
    logger.info("Sentry error reporting enabled (%s)", settings.sentry_environment)

    return True
