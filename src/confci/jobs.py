# jobs.py
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict

from .model import Job, JobOutput, JobResult, JobState

Work = Callable[[JobOutput], Any]


class JobRunner:
    """
    Runs units of work on worker threads and hands back joinable handles.

    start() never blocks the caller; join() blocks until that one job is
    terminal and returns what it produced. The work's exception is captured
    on the result, never re-raised from join().
    """

    def __init__(self, max_workers: int | None = None):
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="confci-job",
        )
        self._futures: Dict[int, Future] = {}

    def __enter__(self) -> "JobRunner":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def start(self, name: str, work: Work) -> Job:
        job = Job(name=name)
        self._futures[id(job)] = self._pool.submit(self._execute, job, work)
        return job

    @staticmethod
    def _execute(job: Job, work: Work) -> None:
        job.state = JobState.RUNNING
        try:
            value = work(job.output)
            if value is not None:
                job.output.write(str(value))
        except Exception as e:
            job.error = e
            job.state = JobState.FAILED
        else:
            job.state = JobState.SUCCEEDED

    def join(self, job: Job) -> JobResult:
        fut = self._futures.pop(id(job))
        # _execute never raises, so result() only waits
        fut.result()
        return JobResult(
            name=job.name,
            state=job.state,
            output=job.output.getvalue(),
            error=job.error,
        )

    def shutdown(self) -> None:
        # Jobs nobody joined still run to completion.
        wait(list(self._futures.values()))
        self._pool.shutdown(wait=True)
