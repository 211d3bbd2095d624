"""
Bounded worker pool: a fixed number of workers consume a job queue and every
job's result or exception is collected. A failing job never cancels the rest.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_WORKERS = 4


@dataclass
class TaskOutcome(Generic[T]):
    item: T
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedWorkerPool:
    """At most ``max_workers`` jobs run at the same time."""

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, name: str = "migrate"):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self.name = name

    def map(self, fn: Callable[[T], Any], items: Iterable[T]) -> List[TaskOutcome[T]]:
        """Run ``fn`` over ``items``; outcomes come back in completion order."""
        outcomes: List[TaskOutcome[T]] = []
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=self.name) as executor:
            futures = {executor.submit(fn, item): item for item in items}
            for future in as_completed(futures):
                item = futures[future]
                try:
                    outcomes.append(TaskOutcome(item, result=future.result()))
                except Exception as e:
                    logger.debug(f"Job for {item} failed: {e}")
                    outcomes.append(TaskOutcome(item, error=e))
        return outcomes
