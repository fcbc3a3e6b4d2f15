# yap/modules/pool.py
"""
WorkerPool - bounded thread pool for one build phase.

Jobs are plain callables. The first failure sets the abort flag: jobs that
have not started yet are skipped, jobs already running finish, and once the
pool has drained the first error is raised to the caller.
"""

from __future__ import annotations
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, List, Optional, Sequence

from yap.modules import logger as _logger

Job = Callable[[], Any]


class WorkerPool:
    def __init__(self, max_workers: int, name: str = "pool"):
        self.max_workers = max(1, int(max_workers or 1))
        self.name = name
        self.log = _logger.Logger(name)
        self._abort = threading.Event()
        self._lock = threading.Lock()
        self._error: Optional[BaseException] = None

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    def _record(self, exc: BaseException):
        with self._lock:
            if self._error is None:
                self._error = exc
        self._abort.set()

    def _guard(self, job: Job, label: str):
        if self._abort.is_set():
            self.log.debug(f"skipping {label}: pool aborted")
            return None
        try:
            return job()
        except Exception as e:
            self._record(e)
            raise

    def run(self, jobs: Sequence[Job], labels: Optional[Sequence[str]] = None) -> List[Any]:
        """Run every job; return results in submission order or raise the first error."""
        if not jobs:
            return []
        labels = list(labels) if labels else [f"job-{i}" for i in range(len(jobs))]
        workers = min(self.max_workers, len(jobs))
        results: List[Any] = [None] * len(jobs)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self.name) as ex:
            future_to_index = {
                ex.submit(self._guard, job, labels[i]): i for i, job in enumerate(jobs)
            }
            for fut in as_completed(future_to_index):
                index = future_to_index[fut]
                try:
                    results[index] = fut.result()
                except Exception as e:
                    self.log.error(f"{labels[index]} failed: {e}")

        if self._error is not None:
            raise self._error
        return results
