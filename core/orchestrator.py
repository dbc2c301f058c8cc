"""
Fan-out layer for independent venue data sources.

Runs several fetches in parallel, each resolving to its value or its
fallback, so one failing source never aborts the others.
"""

from concurrent.futures import Executor, ThreadPoolExecutor, TimeoutError, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.venue.errors import PartialDataUnavailable, TransportTimeout


@dataclass
class SourceConfig:
    """Configuration for fetching a single data source."""

    name: str  # Source name (e.g., "spot_account", "funding_history")
    fetch: Callable[[], Any]  # Zero-arg callable doing the fetch
    fallback_value: Any = None  # Value to use on timeout/error
    required: bool = False  # If True, the failure is re-raised to the caller


@dataclass
class FanOutResult:
    values: Dict[str, Any]
    errors: Dict[str, Exception] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def ok(self, name: str) -> bool:
        return name in self.values and name not in self.errors

    @property
    def failures(self) -> List[str]:
        return list(self.errors)


class FanOut:
    """
    Executes independent fetches concurrently with per-source failure isolation.

    - Optional sources that fail resolve to their ``fallback_value`` and are
      logged, never raised. The error is kept on ``FanOutResult.errors``.
    - A required source that fails re-raises once every source has settled.
    """

    def __init__(self, timeout: Optional[float] = None, executor: Optional[Executor] = None):
        """
        Parameters:
            timeout: Upper bound in seconds for the whole fan-out
            executor: Shared pool; a short-lived one is created per call if None
        """
        self.timeout = timeout
        self._executor = executor

    def execute_parallel(
        self,
        sources: List[SourceConfig],
        on_result: Optional[Callable[[str, Any], None]] = None,
    ) -> FanOutResult:
        """
        Run every source concurrently.

        *on_result* is called with (name, value-or-fallback) as each source
        settles, in completion order.
        """
        if not sources:
            return FanOutResult({})
        if self._executor is not None:
            return self._collect(self._executor, sources, on_result)
        with ThreadPoolExecutor(max_workers=len(sources), thread_name_prefix="fanout") as executor:
            return self._collect(executor, sources, on_result)

    def _collect(
        self,
        executor: Executor,
        sources: List[SourceConfig],
        on_result: Optional[Callable[[str, Any], None]],
    ) -> FanOutResult:
        results: Dict[str, Any] = {}
        errors: Dict[str, Exception] = {}
        required_error: Optional[Exception] = None

        futures = {executor.submit(src.fetch): src for src in sources}
        try:
            for future in as_completed(futures, timeout=self.timeout):
                src = futures[future]
                try:
                    results[src.name] = future.result()
                except Exception as e:
                    results[src.name] = src.fallback_value
                    errors[src.name] = e
                    if src.required:
                        print(f"[FANOUT] {src.name}: ✗ {type(e).__name__}: {e}")
                        required_error = required_error or e
                    else:
                        degraded = PartialDataUnavailable(f"{src.name} unavailable: {e}")
                        print(f"[FANOUT] {src.name}: ✗ {degraded} → fallback")
                if on_result is not None and not (src.required and src.name in errors):
                    on_result(src.name, results[src.name])
        except TimeoutError:
            for src in futures.values():
                if src.name in results:
                    continue
                timeout_error = TransportTimeout(f"{src.name} timed out after {self.timeout}s")
                results[src.name] = src.fallback_value
                errors[src.name] = timeout_error
                print(f"[FANOUT] {src.name}: ⏱ Timeout ({self.timeout}s) → fallback")
                if src.required and required_error is None:
                    required_error = timeout_error
                elif on_result is not None:
                    on_result(src.name, src.fallback_value)

        if required_error is not None:
            raise required_error
        return FanOutResult(results, errors)
