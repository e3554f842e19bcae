"""Timing decorator and in-process counters for the rollup pipeline."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict

logger = logging.getLogger("wallcost-perf")


def timed_async(func: Callable) -> Callable:
    """
    Log the duration of an async call at DEBUG.

    Usage::

        @timed_async
        async def prepare(...):
            ...
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                f"{func.__qualname__} took {duration_ms}ms",
                extra={"function": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


class RollupTracker:
    """
    Thread-safe counters served at /api/metrics.

    Tracks wall types prepared and rolled up, materials that could not be
    found, and the average preparation time.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._wall_types_prepared: int = 0
        self._rollups_built: int = 0
        self._not_found_materials: int = 0
        self._total_prepare_ms: float = 0.0

    def record_prepared(self, duration_ms: float, not_found_count: int = 0) -> None:
        with self._lock:
            self._wall_types_prepared += 1
            self._total_prepare_ms += duration_ms
            self._not_found_materials += not_found_count

    def record_rollup(self) -> None:
        with self._lock:
            self._rollups_built += 1

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            avg = (
                round(self._total_prepare_ms / self._wall_types_prepared, 2)
                if self._wall_types_prepared > 0
                else 0.0
            )
            return {
                "wall_types_prepared": self._wall_types_prepared,
                "rollups_built": self._rollups_built,
                "not_found_materials": self._not_found_materials,
                "avg_prepare_duration_ms": avg,
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._wall_types_prepared = 0
            self._rollups_built = 0
            self._not_found_materials = 0
            self._total_prepare_ms = 0.0


# Module-level singleton; import this instance everywhere else.
tracker = RollupTracker()
