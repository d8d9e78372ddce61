from typing import Any, Awaitable, Callable, Dict, Optional, Set
import asyncio
import structlog

logger = structlog.get_logger(__name__)


class BackgroundTaskRunner:
    """Runs detached jobs with a timeout and a logging error boundary.

    Tasks are held by strong reference until they finish so the event loop
    cannot garbage-collect them mid-flight. A failure or timeout is logged and
    never propagates to whoever scheduled the job.
    """

    def __init__(self, default_timeout: Optional[float] = None):
        self.default_timeout = default_timeout
        self._tasks: Set[asyncio.Task] = set()
        self._stats: Dict[str, int] = {"scheduled": 0, "succeeded": 0, "failed": 0, "timed_out": 0}

    def spawn(
        self,
        name: str,
        job: Callable[[], Awaitable[Any]],
        timeout: Optional[float] = None,
        **log_fields: Any
    ) -> asyncio.Task:
        """Schedule job() on the running loop and return its task"""

        task = asyncio.create_task(
            self._guarded(name, job, timeout or self.default_timeout, log_fields),
            name=name
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._stats["scheduled"] += 1

        logger.debug("Background task scheduled", task_name=name, pending=len(self._tasks), **log_fields)
        return task

    async def _guarded(
        self,
        name: str,
        job: Callable[[], Awaitable[Any]],
        timeout: Optional[float],
        log_fields: Dict[str, Any]
    ) -> Any:
        try:
            if timeout:
                result = await asyncio.wait_for(job(), timeout=timeout)
            else:
                result = await job()
        except asyncio.TimeoutError:
            self._stats["timed_out"] += 1
            logger.error("Background task timed out", task_name=name, timeout=timeout, **log_fields)
            return None
        except asyncio.CancelledError:
            logger.info("Background task cancelled", task_name=name, **log_fields)
            raise
        except Exception as e:
            self._stats["failed"] += 1
            logger.error(
                "Background task failed",
                task_name=name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
                **log_fields
            )
            return None

        self._stats["succeeded"] += 1
        return result

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "pending": len(self._tasks)}

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every pending task; cancel whatever is left after timeout"""

        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info("Draining background tasks", pending=len(tasks))

        _, still_pending = await asyncio.wait(tasks, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning("Cancelled background tasks at shutdown", cancelled=len(still_pending))
