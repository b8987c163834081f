"""
=============================================================================
WORKER THREAD POOL
=============================================================================

Accepted connections wait in a bounded queue for a worker thread:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──► [ bounded queue ] ──► Worker-0          │
    │                                    │            ──► Worker-1          │
    │                                    │            ──► ... Worker-N      │
    │                                    ▼                                  │
    │                      full → submit() is False, server answers 503    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Sizing: ``min_workers`` threads from the start; one more is added each time
work is queued while every worker is busy, until ``max_workers``. A job that
sat in the queue longer than its ``max_wait`` is dropped, its client has
most likely given up. Shutdown drains the queue (bounded by a timeout), then
sends one stop marker per worker.
=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


_STOP = object()


@dataclass
class Job:
    func: Callable[..., Any]
    args: tuple = ()
    max_wait: Optional[float] = None
    queued_at: float = field(default_factory=time.monotonic)

    def stale(self) -> bool:
        return self.max_wait is not None and time.monotonic() - self.queued_at > self.max_wait


class Worker(threading.Thread):
    """Runs jobs from the shared queue until it receives the stop marker."""

    def __init__(self, jobs: queue.Queue, number: int):
        super().__init__(name=f"portfolioapi-worker-{number}", daemon=True)
        self.jobs = jobs
        self.busy = False
        self.completed = 0
        self.failed = 0
        self.dropped = 0

    def run(self) -> None:
        while True:
            job = self.jobs.get()
            try:
                if job is _STOP:
                    return
                self._run_job(job)
            finally:
                self.jobs.task_done()

    def _run_job(self, job: Job) -> None:
        if job.stale():
            self.dropped += 1
            logger.warning(f"{self.name} dropped a job that waited more than {job.max_wait}s")
            return
        self.busy = True
        try:
            job.func(*job.args)
            self.completed += 1
        except Exception as e:
            self.failed += 1
            logger.exception(f"{self.name} job failed: {e}")
        finally:
            self.busy = False


class ThreadPool:
    """
    Args:
        min_workers: Threads started by start().
        max_workers: Ceiling for scale-up.
        queue_size: Jobs that may wait before submit() refuses more.
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, queue_size: int = 100):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self._jobs: queue.Queue = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._accepting = False

    @property
    def size(self) -> int:
        return len(self._workers)

    def start(self) -> None:
        with self._lock:
            if self._accepting:
                return
            for _ in range(self.min_workers):
                self._spawn()
            self._accepting = True
        logger.info(f"Thread pool started with {self.min_workers} workers (max {self.max_workers})")

    def _spawn(self) -> None:
        # requires self._lock
        worker = Worker(self._jobs, len(self._workers))
        self._workers.append(worker)
        worker.start()

    def submit(self, func: Callable[..., Any], args: tuple = (), timeout: Optional[float] = None) -> bool:
        """
        Queue ``func(*args)``.

        Args:
            timeout: Maximum seconds the job may wait in the queue.

        Returns:
            False when the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._accepting:
            raise RuntimeError("Thread pool is not running")
        try:
            self._jobs.put_nowait(Job(func, args, timeout))
        except queue.Full:
            return False

        with self._lock:
            if (len(self._workers) < self.max_workers
                    and all(worker.busy for worker in self._workers)):
                self._spawn()
                logger.debug(f"Thread pool grew to {len(self._workers)} workers")
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop accepting jobs, optionally let queued ones finish, stop the workers."""
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            workers = list(self._workers)

        if wait:
            deadline = time.monotonic() + timeout if timeout else None
            while self._jobs.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Thread pool shutdown timed out with work still queued")
                    break
                time.sleep(0.1)

        for _ in workers:
            try:
                self._jobs.put(_STOP, timeout=1.0)
            except queue.Full:
                break
        for worker in workers:
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
        logger.info("Thread pool stopped")

    @property
    def stats(self) -> Dict[str, int]:
        workers = list(self._workers)
        return {
            "workers": len(workers),
            "busy": sum(1 for w in workers if w.busy),
            "queued": self._jobs.qsize(),
            "completed": sum(w.completed for w in workers),
            "failed": sum(w.failed for w in workers),
            "dropped": sum(w.dropped for w in workers),
        }
