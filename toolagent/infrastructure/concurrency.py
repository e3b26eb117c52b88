"""Cancellation and wall-clock bounds for blocking calls.

Model and tool calls are blocking (HTTP, arbitrary user code). To bound them
they run on a worker thread while the caller waits in short slices, checking
the cancellation token between slices. A call that overruns its budget keeps
running on its worker thread; its result is discarded.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, Optional, TypeVar

from toolagent.domain.exceptions import AgentTimeoutError, RunCancelledError

T = TypeVar("T")

POLL_INTERVAL = 0.05


class CancellationToken:
    """Thread-safe cancellation flag shared between a run and its caller."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to ``timeout`` seconds; returns True as soon as the token fires."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, stage: str = "run") -> None:
        if self._event.is_set():
            raise RunCancelledError(
                message=self._reason or "run cancelled",
                stage=stage,
            )


def call_with_timeout(
    fn: Callable[[], T],
    *,
    timeout: Optional[float] = None,
    stage: str = "call",
    cancel_token: Optional[CancellationToken] = None,
    poll_interval: float = POLL_INTERVAL,
) -> T:
    """Run ``fn`` bounded by ``timeout`` seconds and the cancellation token.

    Raises AgentTimeoutError when the budget runs out and RunCancelledError
    when the token fires; exceptions raised by ``fn`` propagate unchanged.
    """

    if cancel_token is not None:
        cancel_token.raise_if_cancelled(stage)
    if timeout is None and cancel_token is None:
        return fn()
    if timeout is not None and timeout <= 0:
        raise AgentTimeoutError(message=f"{stage} time budget exhausted", stage=stage, timeout=timeout)

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"toolagent-{stage}")
    future = pool.submit(fn)
    deadline = time.monotonic() + timeout if timeout is not None else None
    try:
        while True:
            wait = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise AgentTimeoutError(
                        message=f"{stage} call exceeded {timeout:.3g}s",
                        stage=stage,
                        timeout=timeout,
                    )
                wait = min(wait, remaining)
            try:
                return future.result(timeout=wait)
            except FuturesTimeoutError:
                # fn itself may raise TimeoutError, which is the same class on 3.11+
                if future.done():
                    raise
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage)
    finally:
        future.cancel()
        pool.shutdown(wait=False)
