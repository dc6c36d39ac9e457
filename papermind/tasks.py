"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/tasks.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Bounded worker pool for detached work (pipeline runs, batch
                jobs). Every task is observed: failures are logged and
                published on a supervised error channel. Batch jobs report
                progress through a pollable JobStatus record.
------------------------------------------------------------------------------
"""

import threading
import traceback
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, List, Optional, Set

from papermind.logger import get_logger
from papermind.models import JobKind, JobState, JobStatus, utc_now
from papermind.repositories import JobRepository

logger = get_logger("tasks")


@dataclass
class TaskFailure:
    """One failed background task, as seen by error handlers."""

    name: str
    error: BaseException
    trace: str
    at: datetime = field(default_factory=utc_now)


ErrorHandler = Callable[[TaskFailure], None]


class TaskRunner:
    """
    Wraps a ThreadPoolExecutor with a fixed number of workers.

    Args:
        max_workers: Upper bound of concurrently running tasks.
        max_failures: How many recent failures are kept for inspection.
    """

    def __init__(self, max_workers: int = 2, max_failures: int = 100) -> None:
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="papermind-worker")
        self._failures: Deque[TaskFailure] = deque(maxlen=max_failures)
        self._handlers: List[ErrorHandler] = []
        self._pending: Set[Future] = set()
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedules fn(*args, **kwargs); the result is observed, never dropped."""
        future = self._executor.submit(fn, *args, **kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(lambda f: self._observe(name, f))
        logger.debug(f"Submitted task {name}")
        return future

    def on_error(self, handler: ErrorHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    @property
    def failures(self) -> List[TaskFailure]:
        with self._lock:
            return list(self._failures)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def _observe(self, name: str, future: Future) -> None:
        try:
            self._report(name, future)
        finally:
            with self._idle:
                self._pending.discard(future)
                self._idle.notify_all()

    def _report(self, name: str, future: Future) -> None:
        if future.cancelled():
            logger.info(f"Task {name} cancelled")
            return
        exc = future.exception()
        if exc is None:
            return

        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        failure = TaskFailure(name=name, error=exc, trace=trace)
        logger.error(f"Task {name} failed: {exc!r}")
        logger.debug(trace)
        with self._lock:
            self._failures.append(failure)
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(failure)
            except Exception as e:
                logger.error(f"Error handler failed for task {name}: {e}")

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until all tasks submitted so far are done and their failures
        have been published. Tasks submitted meanwhile are waited for too.
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._pending, timeout)

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks, cancel_futures=not wait_for_tasks)
        logger.info("Worker pool stopped")


JobBody = Callable[[JobStatus], None]


class JobRunner:
    """
    Starts batch jobs on the worker pool and keeps their status record
    current. The body updates counters through JobRepository.progress().
    """

    def __init__(self, runner: TaskRunner, jobs: JobRepository) -> None:
        self.runner = runner
        self.jobs = jobs

    def start(self, kind: JobKind, total: int, body: JobBody) -> JobStatus:
        """Creates the status record and returns it immediately."""
        job = self.jobs.create(JobStatus(kind=kind, total=total))
        self.runner.submit(f"{kind.value}:{job.id}", self._run, job, body)
        logger.info(f"Started job {kind.value} {job.id} ({total} items)")
        return job

    def _run(self, job: JobStatus, body: JobBody) -> None:
        try:
            body(job)
        except Exception as e:
            self.jobs.finish(job.id, JobState.FAILED, error=str(e))
            raise
        self.jobs.finish(job.id, JobState.FINISHED)
        final = self.jobs.get(job.id)
        if final:
            logger.info(
                f"Job {job.kind.value} {job.id} finished: {final.processed}/{final.total} processed, "
                f"{final.affected} affected, {final.failed} failed"
            )

    def get(self, job_id: str) -> Optional[JobStatus]:
        return self.jobs.get(job_id)
