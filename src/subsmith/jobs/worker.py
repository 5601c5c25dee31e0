"""Worker pool — claim queued jobs, run them, retry or finalise.

Each worker thread loops: claim the next ready job from the store, run the
pipeline with a :class:`JobContext` bound to that job, then record the
outcome. Any exception from the run counts as a failed attempt; the retry
policy alone decides between requeue with backoff and terminal failure.
Terminal events are published only when the store confirms the transition,
so each job's completed/failed event goes out exactly once.
"""

from __future__ import annotations

import threading
from typing import Callable

from subsmith.core.context import JobContext
from subsmith.core.errors import JobCancelled, QueueExhausted
from subsmith.core.events import EventBroker, ProgressEvent
from subsmith.core.models import Job, JobPayload
from subsmith.jobs.policy import RetryPolicy
from subsmith.jobs.store import STALE_FINAL_ATTEMPT_ERROR, JobStore
from subsmith.utils.console import console

JobRunner = Callable[[JobContext, JobPayload], str]

# An active job untouched this long is assumed to belong to a dead worker
DEFAULT_STALE_AFTER = 15 * 60.0


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class WorkerPool:
    def __init__(
        self,
        store: JobStore,
        broker: EventBroker,
        runner: JobRunner,
        policy: RetryPolicy | None = None,
        workers: int = 1,
        poll_interval: float = 0.5,
        stale_after: float = DEFAULT_STALE_AFTER,
    ) -> None:
        if workers < 1:
            raise ValueError("Worker pool needs at least one worker")
        self.store = store
        self.broker = broker
        self.runner = runner
        self.policy = policy or RetryPolicy()
        self.workers = workers
        self.poll_interval = poll_interval
        self.stale_after = stale_after
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    # --- lifecycle ------------------------------------------------------

    def start(self) -> None:
        """Recover abandoned jobs and start the worker threads."""
        if self._threads:
            return
        requeued, exhausted = self.store.recover_stale(self.stale_after, self.policy.max_attempts)
        if requeued:
            console.print(f"[yellow]Requeued {requeued} job(s) left active by a dead worker.[/yellow]")
        for job_id in exhausted:
            console.print(f"[red]Job {job_id} failed:[/red] {STALE_FINAL_ATTEMPT_ERROR}")
            self.broker.publish(job_id, ProgressEvent.failed(STALE_FINAL_ATTEMPT_ERROR))
        self._stop.clear()
        for i in range(self.workers):
            thread = threading.Thread(
                target=self._loop, daemon=True, name=f"subsmith-worker-{i + 1}"
            )
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float | None = None) -> None:
        """Ask workers to stop after their current job and wait for them."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                claimed = self.run_once()
            except Exception as e:
                # A job stranded here stays active until recover_stale reclaims it
                console.print(f"[red]Worker error:[/red] {_error_message(e)}")
                claimed = False
            if not claimed:
                self._stop.wait(self.poll_interval)

    # --- execution ------------------------------------------------------

    def run_once(self) -> bool:
        """Claim and process one ready job. Returns False if none was ready."""
        job = self.store.claim()
        if job is None:
            return False
        console.print(f"[bold]Job {job.id}:[/bold] attempt {job.attempts}/{self.policy.max_attempts}")
        self.process(job)
        return True

    def _context(self, job: Job) -> JobContext:
        def on_stage(stage: str) -> None:
            # Persist first so a status poll never lags the bus
            self.store.update_progress(job, stage)
            self.broker.publish(job.id, ProgressEvent.progress(stage))

        def on_event(event: ProgressEvent) -> None:
            self.broker.publish(job.id, event)

        return JobContext(
            job_id=job.id,
            on_stage=on_stage,
            on_event=on_event,
            is_cancelled=lambda: self.store.is_cancel_requested(job.id),
        )

    def process(self, job: Job) -> None:
        """Run one claimed job to the end of this attempt."""
        try:
            result = self.runner(self._context(job), job.payload)
        except JobCancelled as e:
            console.print(f"[yellow]Job {job.id} cancelled.[/yellow]")
            self._finish_failed(job, _error_message(e))
        except Exception as e:
            self._handle_failure(job, e)
        else:
            try:
                completed = self.store.complete(job, result)
            except Exception as e:
                console.print(f"[red]Could not record result of job {job.id}:[/red] {_error_message(e)}")
                self._handle_failure(job, e)
                return
            if completed:
                self.broker.publish(job.id, ProgressEvent.completed(result))
                console.print(f"[green]Job {job.id} completed.[/green]")
            else:
                console.print(f"[yellow]Job {job.id} finished but was no longer owned by this worker.[/yellow]")

    def _handle_failure(self, job: Job, error: Exception) -> None:
        message = _error_message(error)
        if self.policy.should_retry(job.attempts):
            delay = self.policy.delay(job.attempts)
            if self.store.requeue(job, message, delay):
                console.print(
                    f"[yellow]Job {job.id} attempt {job.attempts} failed:[/yellow] {message} "
                    f"(retrying in {delay:g}s)"
                )
            return

        exhausted = QueueExhausted(job.id, job.attempts, message)
        console.print(
            f"[red]Job {job.id} failed after {exhausted.attempts} attempt(s):[/red] {exhausted}"
        )
        self._finish_failed(job, message)

    def _finish_failed(self, job: Job, message: str) -> None:
        if self.store.fail(job, message):
            self.broker.publish(job.id, ProgressEvent.failed(message))
