"""
Fixed-interval background flush loop for batched requests.
"""

import threading
from typing import Callable, Optional


class BatchTicker:
    """Calls ``flush_fn`` every ``interval`` seconds on a daemon thread until stopped."""

    def __init__(self, name: str, interval: float, flush_fn: Callable[[], None]):
        self.name = name
        self.interval = interval
        self._flush_fn = flush_fn
        self._stop_flag = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _run(self, stop_flag: threading.Event) -> None:
        while not stop_flag.wait(self.interval):
            try:
                self._flush_fn()
            except Exception as e:
                print(f"[BATCH] {self.name} flush failed: {e}")

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_flag = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_flag,),
            daemon=True,
            name=f"batch-{self.name}",
        )
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_flag.set()
        thread = self._thread
        if thread and thread.is_alive():
            thread.join(timeout=timeout)
            if thread.is_alive():
                print(f"[BATCH] Warning: {self.name} ticker did not stop cleanly")
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
