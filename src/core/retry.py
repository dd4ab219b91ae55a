"""
Transient Failure Retry

Data-store hiccups (dropped connections, timeouts) are retried with
exponential backoff. Business-rule rejections (CagriException) are final
and pass straight through.

Only wrap operations that are safe to run twice: reads and upserts. A
commit can land on the server while the client still sees the error.
"""
import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import OperationalError
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import settings
from src.core.logging import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    TimeoutError,
    ConnectionError,
)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Transient data-store error, retrying",
        operation=getattr(retry_state.fn, "__qualname__", None),
        attempt=retry_state.attempt_number,
        error_type=type(exc).__name__ if exc else None,
        error=str(exc) if exc else None,
    )


def transient_retry(func: F) -> F:
    """
    Retry a service coroutine on transient data-store errors.

    The wrapped method must belong to an object exposing ``db``
    (an AsyncSession); the session is rolled back before each new attempt
    so the operation restarts from a clean transaction.
    """

    @retry(
        stop=stop_after_attempt(settings.db_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.db_retry_wait_multiplier,
            min=settings.db_retry_wait_min,
            max=settings.db_retry_wait_max,
        ),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=_log_retry,
        reraise=True,
    )
    @functools.wraps(func)
    async def wrapper(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return await func(self, *args, **kwargs)
        except TRANSIENT_ERRORS:
            await self.db.rollback()
            raise

    return wrapper  # type: ignore[return-value]
