"""Per-device FIFO execution: one in-flight call per device, failures never stall the queue."""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

from .errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeviceQueues:
    """
    Serialize calls per device identity.

    Each device gets a single-worker executor, so submitted callables run strictly
    in submission order with concurrency one. A call that raises only fails its own
    Future; later calls for the same device still run. Different devices never
    wait on each other.
    """

    def __init__(self, thread_name_prefix: str = "pyloadlynx") -> None:
        self._prefix = thread_name_prefix
        self._executors: dict[str, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()
        self._closed = False

    def _executor(self, device_id: str) -> ThreadPoolExecutor:
        # Caller holds self._lock.
        if self._closed:
            raise RuntimeError("DeviceQueues is closed")
        executor = self._executors.get(device_id)
        if executor is None:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{self._prefix}-{device_id}")
            self._executors[device_id] = executor
        return executor

    def submit(self, device_id: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> "Future[T]":
        with self._lock:
            future = self._executor(device_id).submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: _log_failure(device_id, f))
        return future

    def call(self, device_id: str, fn: Callable[..., T], *args: Any, timeout: float | None = None, **kwargs: Any) -> T:
        """Submit and wait; exceptions from ``fn`` propagate unchanged."""
        return self.submit(device_id, fn, *args, **kwargs).result(timeout=timeout)

    def devices(self) -> list[str]:
        with self._lock:
            return sorted(self._executors)

    def discard(self, device_id: str, wait: bool = True) -> bool:
        """
        Drop the worker of one device once its queued calls have run.

        Returns False for an unknown device. A later submit for the same device
        starts a fresh queue.
        """
        with self._lock:
            executor = self._executors.pop(device_id, None)
        if executor is None:
            return False
        executor.shutdown(wait=wait)
        logger.debug("[%s] queue discarded", device_id)
        return True

    def close(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            executors = list(self._executors.values())
            self._executors.clear()
        for executor in executors:
            executor.shutdown(wait=wait)

    def __enter__(self) -> "DeviceQueues":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def _log_failure(device_id: str, future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.warning("[%s] queued call failed: %s", device_id, exc)


def call_with_retry(
    fn: Callable[[], T],
    attempts: int = 3,
    delay_s: float = 0.0,
) -> T:
    """
    Retry ``fn`` on TransportError only.

    Lifecycle calls are idempotent with respect to the final RAM state, so repeating
    one after a transport failure is safe. Validation and precondition errors are
    never retried.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")
    attempt = 1
    while True:
        try:
            return fn()
        except TransportError as e:
            if attempt >= attempts:
                raise
            logger.info("Transport failure (attempt %d/%d): %s", attempt, attempts, e)
            if delay_s > 0:
                time.sleep(delay_s)
            attempt += 1
