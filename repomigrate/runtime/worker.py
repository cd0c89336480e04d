"""Bounded concurrent executor with dependency-aware scheduling.

A task is submitted only once every task it depends on has succeeded.
Dependents of a failed task are reported as blocked. With
``halt_on_failure`` the first failure stops new submissions; in-flight
tasks are allowed to finish and everything still queued is skipped.
"""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

logger = logging.getLogger("repomigrate.runtime.worker")


class TaskStatus(Enum):
    """Final status of a task.

    - SUCCEEDED: Function returned normally
    - FAILED: Function raised
    - BLOCKED: A dependency failed or was blocked
    - SKIPPED: Never started because the run was halted
    """

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"
    SKIPPED = "skipped"


@dataclass
class Task:
    """Task representation for the worker queue.

    Attributes:
        task_id: Unique task identifier.
        func: Callable to execute.
        depends_on: Task ids that must succeed first. Ids that are not
            queued in the same run are treated as satisfied.
        metadata: Optional task metadata.
    """

    task_id: str
    func: Callable[[], Any]
    depends_on: FrozenSet[str] = frozenset()
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash(self.task_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Task):
            return False
        return self.task_id == other.task_id


@dataclass
class TaskResult:
    """Task execution result.

    Attributes:
        task_id: Task identifier.
        status: Final status.
        result: Return value from task function.
        error: Exception if task failed.
        execution_time: Time taken in seconds.
        detail: Human-readable reason for BLOCKED/SKIPPED.
    """

    task_id: str
    status: TaskStatus
    result: Any = None
    error: Optional[BaseException] = None
    execution_time: float = 0.0
    detail: str = ""

    @property
    def success(self) -> bool:
        return self.status is TaskStatus.SUCCEEDED


class Worker:
    """Concurrent task executor for the modules of one phase."""

    def __init__(self, max_workers: int = 4, halt_on_failure: bool = True) -> None:
        """Initialize worker.

        Args:
            max_workers: Maximum concurrent threads.
            halt_on_failure: Stop submitting new tasks after the first failure.
        """
        self.max_workers = max_workers
        self.halt_on_failure = halt_on_failure
        self._queue: "OrderedDict[str, Task]" = OrderedDict()
        self._seen_tasks: Set[str] = set()
        self._results: Dict[str, TaskResult] = {}
        self._lock = threading.RLock()
        self._halted = threading.Event()

        logger.debug("Worker initialized with %d max workers", max_workers)

    @property
    def halted(self) -> bool:
        return self._halted.is_set()

    def halt(self) -> None:
        """Stop submitting new tasks; running tasks finish."""
        self._halted.set()

    def enqueue(self, task: Task) -> bool:
        """Add task to queue if not already seen.

        Returns:
            bool: True if task was added, False if duplicate.
        """
        with self._lock:
            if task.task_id in self._seen_tasks:
                logger.debug("Task %s already seen, skipping", task.task_id)
                return False
            self._seen_tasks.add(task.task_id)
            self._queue[task.task_id] = task
            return True

    def enqueue_many(self, tasks: List[Task]) -> int:
        return sum(1 for task in tasks if self.enqueue(task))

    def _execute_task(self, task: Task) -> TaskResult:
        start_time = time.time()
        logger.debug("Executing task: %s", task.task_id)
        try:
            result = task.func()
        except Exception as e:  # pylint: disable=broad-exception-caught
            execution_time = time.time() - start_time
            logger.error("Task %s failed: %s", task.task_id, e)
            return TaskResult(
                task_id=task.task_id,
                status=TaskStatus.FAILED,
                error=e,
                execution_time=execution_time,
            )
        execution_time = time.time() - start_time
        logger.debug("Task %s completed in %.2fs", task.task_id, execution_time)
        return TaskResult(
            task_id=task.task_id,
            status=TaskStatus.SUCCEEDED,
            result=result,
            execution_time=execution_time,
        )

    def _ready_tasks(self) -> List[Task]:
        """Pop tasks whose dependencies succeeded; mark dependents of failures blocked."""
        ready: List[Task] = []
        progressed = True
        while progressed:
            progressed = False
            for task_id, task in list(self._queue.items()):
                queued_deps = [
                    dep for dep in task.depends_on
                    if dep in self._seen_tasks and dep != task_id
                ]
                failed = [
                    dep for dep in queued_deps
                    if dep in self._results and not self._results[dep].success
                ]
                if failed:
                    del self._queue[task_id]
                    self._results[task_id] = TaskResult(
                        task_id=task_id,
                        status=TaskStatus.BLOCKED,
                        detail="dependency did not succeed: " + ", ".join(sorted(failed)),
                    )
                    logger.warning("Task %s blocked by %s", task_id, ", ".join(sorted(failed)))
                    progressed = True
                elif all(dep in self._results for dep in queued_deps):
                    del self._queue[task_id]
                    ready.append(task)
        return ready

    def run_all(self) -> Dict[str, TaskResult]:
        """Execute all queued tasks respecting dependencies.

        Returns:
            Dict[str, TaskResult]: Results for every queued task.
        """
        logger.info("Starting task execution with %d tasks", len(self._queue))
        ready: List[Task] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures: Dict[Future, str] = {}

            while True:
                with self._lock:
                    if not self.halted:
                        ready.extend(self._ready_tasks())
                    while ready and len(futures) < self.max_workers and not self.halted:
                        task = ready.pop(0)
                        futures[executor.submit(self._execute_task, task)] = task.task_id
                        logger.debug("Submitted task %s for execution", task.task_id)

                if not futures:
                    break

                done, _ = wait(list(futures), return_when=FIRST_COMPLETED)
                for future in done:
                    task_id = futures.pop(future)
                    result = future.result()
                    with self._lock:
                        self._results[task_id] = result
                    if not result.success and self.halt_on_failure and not self.halted:
                        logger.warning(
                            "Task %s failed; halting: no new tasks will start", task_id
                        )
                        self.halt()

        with self._lock:
            for task in ready:
                self._queue.setdefault(task.task_id, task)
            for task_id in list(self._queue):
                del self._queue[task_id]
                self._results[task_id] = TaskResult(
                    task_id=task_id,
                    status=TaskStatus.SKIPPED,
                    detail="run halted before the task started",
                )

        successful = sum(1 for r in self._results.values() if r.success)
        logger.info(
            "Task execution completed: %d successful, %d not successful",
            successful,
            len(self._results) - successful,
        )
        return dict(self._results)

    def get_results(self) -> Dict[str, TaskResult]:
        with self._lock:
            return dict(self._results)

    def clear(self) -> None:
        """Clear queue and results."""
        with self._lock:
            self._queue.clear()
            self._seen_tasks.clear()
            self._results.clear()
            self._halted.clear()


__all__ = ["Task", "TaskResult", "TaskStatus", "Worker"]
