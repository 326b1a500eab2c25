import threading
from typing import Any, Callable, TypeVar

from .exceptions import RetriesExhaustedError, SessionClosedError, TransientError
from .logger import logger
from .schemas import S3StreamConfig

T = TypeVar("T")


def backoff_delay(config: S3StreamConfig, attempt: int) -> float:
    return float(
        min(
            config.retry_backoff_sec * 2 ** (attempt - 1),
            config.max_retry_backoff_sec,
        )
    )


def call_with_retry(
    operation: Callable[[], T],
    config: S3StreamConfig,
    description: str,
    extra: dict[str, Any] | None = None,
    stop_event: threading.Event | None = None,
) -> T:
    """
    Run `operation`, retrying it on TransientError.

    Any other exception propagates untouched. When `stop_event` is given the
    backoff sleep is interrupted by it and the call gives up with
    SessionClosedError.
    """
    extra = extra or {}
    stop_event = stop_event or threading.Event()
    for attempt in range(1, config.max_attempts + 1):
        if stop_event.is_set():
            raise SessionClosedError(f"{description} skipped, session is closed")
        try:
            return operation()
        except TransientError as exception:
            if attempt == config.max_attempts:
                logger.exception(
                    f"{description} failed after {config.max_attempts} attempts",
                    extra=extra,
                )
                raise RetriesExhaustedError(
                    f"{description} failed after {attempt} attempts",
                    attempts=attempt,
                ) from exception
            delay = backoff_delay(config, attempt)
            logger.warning(
                f"{description} failed, retrying...",
                extra={**extra, "attempt": attempt, "delay": delay},
            )
            if stop_event.wait(delay):
                raise SessionClosedError(
                    f"{description} abandoned, session is closed"
                ) from exception
    raise NotImplementedError("This should never be reached")
