# appointease/core/retry.py
"""Store error translation and bounded retry with exponential backoff"""
import asyncio
import functools
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.config.settings import get_settings
from appointease.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connectivity failures only; IntegrityError and friends are real answers.
TRANSIENT_STORE_ERRORS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    ConnectionError,
    asyncio.TimeoutError,
)


def translate_store_errors(func):
    """Re-raise driver connectivity errors from an async service method as StoreUnavailable"""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except TRANSIENT_STORE_ERRORS as e:
            logger.error(f"Store unavailable during {func.__qualname__}: {e}")
            raise StoreUnavailable(
                "Data store is temporarily unavailable, please retry",
                details={"operation": func.__qualname__},
            ) from e

    return wrapper


async def with_store_retry(
        operation: Callable[[], Awaitable[T]],
        attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        db: Optional[AsyncSession] = None,
) -> T:
    """
    Run ``operation`` and retry it on StoreUnavailable.

    Operations are side-effect-free until commit, so re-running the whole
    call is safe. Delay doubles each attempt: base, 2*base, 4*base...

    Args:
        operation: Zero-argument coroutine factory
        attempts: Total attempts (defaults to MAX_RETRY_ATTEMPTS)
        base_delay: First backoff delay in seconds
        db: Session to roll back before each new attempt

    Returns:
        Whatever the operation returns
    """
    settings = get_settings()
    attempts = attempts or settings.MAX_RETRY_ATTEMPTS
    base_delay = settings.RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except StoreUnavailable:
            if attempt == attempts:
                logger.error(f"Store still unavailable after {attempts} attempts, giving up")
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"Store unavailable (attempt {attempt}/{attempts}), retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
            if db is not None:
                try:
                    await db.rollback()
                except TRANSIENT_STORE_ERRORS as e:
                    logger.warning(f"Rollback before retry failed: {e}")
