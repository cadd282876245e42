"""Bounded calls to external dependencies (identity provider, object store)."""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="external-call")


def call_with_timeout(fn: Callable[..., T], timeout_seconds: float, *args: Any) -> T:
    """
    Run ``fn(*args)`` and wait at most ``timeout_seconds`` for the result.

    Raises:
        concurrent.futures.TimeoutError: The call did not finish in time.
            The worker keeps running; its result is discarded.
        Exception: Whatever ``fn`` raised.
    """
    future = _executor.submit(fn, *args)
    try:
        return future.result(timeout=timeout_seconds)
    finally:
        future.cancel()
