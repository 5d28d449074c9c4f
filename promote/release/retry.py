from __future__ import annotations

import threading
from collections.abc import Callable
from time import sleep as _sleep

from promote.core.config import RetryConfig
from promote.core.result import Err, Result
from promote.release.errors import HostError

Sleep = Callable[[float], None]


def with_retry[T](
    op: Callable[[], Result[T, HostError]],
    *,
    policy: RetryConfig,
    sleep: Sleep = _sleep,
    cancel: threading.Event | None = None,
) -> Result[T, HostError]:
    """Run op, retrying transient HostErrors with linear backoff.

    At most `policy.attempts` calls are made. A set `cancel` event stops before
    the next attempt and returns the last error.
    """
    attempts = max(1, policy.attempts)
    result = op()
    for attempt in range(1, attempts):
        if not isinstance(result, Err) or not result.error.retryable:
            return result
        if cancel is not None and cancel.is_set():
            return result
        sleep(policy.delay_seconds * attempt)
        result = op()
    return result
