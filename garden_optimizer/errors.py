"""
Error taxonomy for the layout engine.

Validation problems fail fast before any computation starts. Timeouts and
unplaced plants are recoverable: they come back attached to a PARTIAL result
instead of being raised.
"""

from typing import Iterable, List


class OptimizationError(Exception):
    """Base class for everything the engine raises or returns."""


class InvalidInputError(OptimizationError, ValueError):
    """Garden, zones, plants or params are out of range. Never retried."""


class InvalidParameterError(InvalidInputError):
    """A plant parameter (spacing) is not usable for footprint math."""


class LayoutTimeoutError(OptimizationError, TimeoutError):
    """The call deadline expired before every zone task finished."""

    def __init__(self, deadline_ms: float, zones_completed: int, zones_total: int):
        self.deadline_ms = deadline_ms
        self.zones_completed = zones_completed
        self.zones_total = zones_total
        super().__init__(
            f"Layout deadline of {deadline_ms:.0f}ms exceeded "
            f"({zones_completed}/{zones_total} zones finished)"
        )


class CacheComputationError(OptimizationError):
    """
    The compute function raised while holding a single-flight slot.

    The original exception is kept as ``__cause__``. Every caller that was
    waiting on the same key receives this error; the slot is released so the
    next call computes again.
    """

    def __init__(self, key: str, message: str = ""):
        self.key = key
        super().__init__(message or f"Layout computation failed for cache key {key}")


class CacheWaitTimeoutError(OptimizationError, TimeoutError):
    """A caller's wait on another caller's in-flight computation ran out."""

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Gave up waiting {timeout:.3f}s on in-flight computation for {key}")


class UnplacedPlantWarning(UserWarning):
    """One or more plants found no eligible zone. Attached to PARTIAL results."""

    def __init__(self, plant_ids: Iterable[str]):
        self.plant_ids: List[str] = list(plant_ids)
        super().__init__(
            f"{len(self.plant_ids)} plant(s) could not be placed: {', '.join(self.plant_ids)}"
        )
