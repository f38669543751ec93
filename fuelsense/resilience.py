"""
Retry and cancellation helpers for forecast provider calls.

Transient provider failures are retried with exponential backoff; structural
failures and non-retryable status codes are raised on the first attempt.
Pool futures are awaited with a cancel event so a caller can abort a run.
"""
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, wait
from typing import Callable, Optional

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from fuelsense.errors import PipelineCancelled, UpstreamUnavailable

logger = logging.getLogger(__name__)

# Poll interval while waiting on a future with a cancel event attached (s)
CANCEL_POLL_S = 0.1


def is_transient(error: BaseException) -> bool:
    """True for provider failures worth another attempt."""
    return isinstance(error, UpstreamUnavailable) and error.retryable


def retry_policy(
    max_retries: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 8.0,
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """
    Build a tenacity retry controller for one outbound call.

    Args:
        max_retries: Retries after the first attempt (3 -> waits of 1s, 2s, 4s)
        min_wait: First backoff in seconds, doubled on each retry
        max_wait: Backoff ceiling in seconds
        cancel_event: Stops retrying once set
        sleep: Sleep function (tests pass a no-op)

    Usage:
        for attempt in retry_policy(max_retries=3):
            with attempt:
                fetch()
    """
    stop = stop_after_attempt(max_retries + 1)
    if cancel_event is not None:
        stop = stop | stop_when_event_set(cancel_event)

    return Retrying(
        stop=stop,
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception(is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )


def await_future(
    future: Future,
    cancel_event: Optional[threading.Event] = None,
    poll_s: float = CANCEL_POLL_S,
):
    """
    Result of a pool future, polling the cancel event while it runs.

    Raises:
        PipelineCancelled: If cancel_event is set before the future completes
    """
    if cancel_event is None:
        return future.result()
    while True:
        if cancel_event.is_set():
            future.cancel()
            raise PipelineCancelled("Forecast fetch cancelled")
        done, _ = wait([future], timeout=poll_s, return_when=FIRST_COMPLETED)
        if done:
            return future.result()
