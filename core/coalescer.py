"""
Request coalescing: concurrent identical calls share one network round trip.
"""

import threading
from concurrent.futures import Future, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Optional

from core.venue.errors import TransportTimeout


class RequestCoalescer:
    """
    Keeps at most one in-flight request per key.

    The first caller for a key runs the request factory on its own thread and
    publishes the outcome through a shared ``Future``; every caller arriving
    while it is in flight waits on that same future and receives the same
    result or the same exception. The registration is dropped as soon as the
    request settles, on success and failure alike.

    Waiters are bounded by ``wait_timeout`` so a hung owner can never lock
    a key forever; the owner itself is bounded by the transport timeout.
    """

    def __init__(self, wait_timeout: Optional[float] = None):
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._wait_timeout = wait_timeout
        self.executed = 0
        self.coalesced = 0

    def execute(self, key: str, request_factory: Callable[[], Any]) -> Any:
        with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future
                self.executed += 1
            else:
                self.coalesced += 1

        if owner:
            return self._run(key, future, request_factory)

        try:
            return future.result(timeout=self._wait_timeout)
        except FuturesTimeoutError:
            raise TransportTimeout(f"Timed out waiting for in-flight request {key}")

    def _run(self, key: str, future: Future, request_factory: Callable[[], Any]) -> Any:
        result: Any = None
        error: Optional[BaseException] = None
        try:
            result = request_factory()
            return result
        except BaseException as exc:
            error = exc
            raise
        finally:
            # Waiters must never be left on an unsettled future, interrupts included
            self._release(key)
            if error is None:
                future.set_result(result)
            else:
                future.set_exception(error)

    def _release(self, key: str) -> None:
        with self._lock:
            self._in_flight.pop(key, None)

    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)
