"""
Scoring worker pool.

Runs the pure scoring function on a fixed-size thread pool so the
event loop stays free for provider I/O. Errors never propagate: a
failed task comes back with ``error`` set and a zero score.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import structlog

from .models import ConflictFactors, ConflictScore, ScoringPayload, ScoringResult, ScoringTask
from .scorer import calculate_conflict_score

logger = structlog.get_logger()

DEFAULT_WORKERS = 4


class ScoringWorkerPool:
    """Fixed-size pool answering ScoringTask messages with ScoringResult messages."""

    def __init__(
        self,
        max_workers: int = DEFAULT_WORKERS,
        score_fn: Callable[[ScoringPayload], ConflictScore] = calculate_conflict_score,
    ):
        self.max_workers = max_workers
        self.score_fn = score_fn
        self._executor: Optional[ThreadPoolExecutor] = None

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="conflict-scorer"
            )
        return self._executor

    async def submit(self, task: ScoringTask) -> ScoringResult:
        loop = asyncio.get_running_loop()
        try:
            score = await loop.run_in_executor(
                self._ensure_executor(), self.score_fn, task.payload
            )
        except Exception as e:
            logger.error("scoring_task_failed", task_id=task.task_id, error=str(e))
            return ScoringResult(
                task_id=task.task_id,
                type=task.type,
                result=ConflictScore(
                    score=0.0,
                    factors=ConflictFactors(
                        seasonal_multiplier=task.payload.seasonal_multiplier,
                        holiday_multiplier=task.payload.holiday_multiplier,
                    ),
                ),
                error=str(e),
            )

        return ScoringResult(task_id=task.task_id, type=task.type, result=score)

    async def submit_many(self, tasks: list[ScoringTask]) -> list[ScoringResult]:
        return list(await asyncio.gather(*(self.submit(t) for t in tasks)))

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    async def __aenter__(self) -> "ScoringWorkerPool":
        self._ensure_executor()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
