"""Translation service: submission, live status and the worker pool in one place."""

from __future__ import annotations

import json
from functools import partial
from pathlib import Path
from typing import Iterator

from pydantic import TypeAdapter, ValidationError

from subsmith.core.config import SubsmithConfig
from subsmith.core.errors import JobCancelled
from subsmith.core.events import EventBroker, ProgressEvent, Subscription
from subsmith.core.models import Job, JobPayload, JobStatus, UserGlossaryItem
from subsmith.core.pipeline import run_translation
from subsmith.jobs.policy import RetryPolicy, exponential_backoff
from subsmith.jobs.store import JobStore
from subsmith.jobs.worker import WorkerPool
from subsmith.llm.client import AIGateway
from subsmith.memory.index import SqliteVectorIndex
from subsmith.memory.store import ContextMemoryStore

_GLOSSARY_ADAPTER = TypeAdapter(list[UserGlossaryItem])


def parse_glossary_document(text: str) -> list[UserGlossaryItem]:
    """Parse a JSON glossary document: ``[{"term": ..., "translation": ...}]``.

    Raises:
        ValueError: If the document is not valid JSON or has the wrong shape.
    """
    if not text.strip():
        return []
    try:
        return _GLOSSARY_ADAPTER.validate_json(text)
    except ValidationError as e:
        raise ValueError(f"Invalid glossary document: {e.error_count()} error(s)") from e


def load_glossary(path: Path) -> list[UserGlossaryItem]:
    return parse_glossary_document(Path(path).read_text(encoding="utf-8"))


class TranslationService:
    """Front door for submitting jobs and following them.

    Builds the job store, event broker, AI gateway, memory store and worker
    pool from config. Pass ``gateway`` or ``memory`` to replace the real ones.
    """

    def __init__(
        self,
        config: SubsmithConfig,
        gateway=None,
        memory: ContextMemoryStore | None = None,
        broker: EventBroker | None = None,
        store: JobStore | None = None,
    ) -> None:
        self.config = config
        self.store = store or JobStore(config.queue.db_path)
        self.broker = broker or EventBroker()

        if gateway is None:
            config.require_credentials()
            gateway = AIGateway(config.ai)
        self.gateway = gateway

        if memory is None:
            memory = ContextMemoryStore(
                gateway,
                SqliteVectorIndex(config.memory.db_path, config.memory.index_name),
                upsert_chunk_size=config.memory.upsert_chunk_size,
                top_k=config.memory.top_k,
            )
        self.memory = memory

        runner = partial(run_translation, gateway=self.gateway, memory=self.memory, config=config)
        self.pool = WorkerPool(
            self.store,
            self.broker,
            runner,
            policy=RetryPolicy(
                max_attempts=config.queue.max_attempts,
                backoff=exponential_backoff(config.queue.backoff_base),
            ),
            workers=config.queue.workers,
            poll_interval=config.queue.poll_interval,
        )

    # --- submission and status ------------------------------------------

    def submit(
        self,
        subtitle_content: str,
        tone: str = "Neutral",
        thinking_mode: bool = False,
        user_glossary: list[UserGlossaryItem] | None = None,
    ) -> str:
        """Queue a translation job and return its id without waiting."""
        payload = JobPayload(
            subtitle_content=subtitle_content,
            tone=tone or "Neutral",
            thinking_mode=thinking_mode,
            user_glossary=list(user_glossary or []),
        )
        return self.store.create(payload).id

    def get(self, job_id: str) -> Job | None:
        return self.store.get(job_id)

    def subscribe(self, job_id: str) -> Subscription:
        """Follow a job's events from now on. Close the handle on disconnect."""
        return self.broker.subscribe(job_id)

    def follow(
        self, subscription: Subscription, poll_interval: float | None = None
    ) -> Iterator[ProgressEvent]:
        """Yield a job's events until it reaches a terminal state.

        Another process sharing the queue may run the job, in which case its
        events never reach this broker. Between events the persisted record
        is checked, and a terminal record ends the stream with the matching
        completed or failed event.
        """
        interval = poll_interval or self.config.queue.poll_interval
        job_id = subscription.topic
        try:
            while True:
                event = subscription.get(timeout=interval)
                if event is not None:
                    yield event
                    if event.is_terminal:
                        return
                    continue
                if subscription.closed:
                    return
                job = self.store.get(job_id)
                if job is None:
                    return
                if job.status == JobStatus.COMPLETED:
                    yield ProgressEvent.completed(job.result or "")
                    return
                if job.status == JobStatus.FAILED:
                    yield ProgressEvent.failed(job.last_error or "Job failed")
                    return
        finally:
            subscription.close()

    def cancel(self, job_id: str) -> bool:
        """Request cancellation. Returns False if the job is unknown or already finished."""
        job = self.store.get(job_id)
        if job is None or job.status.is_terminal:
            return False
        message = str(JobCancelled(job_id))
        if self.store.request_cancel(job_id, message):
            self.broker.publish(job_id, ProgressEvent.failed(message))
        return True

    # --- worker lifecycle -----------------------------------------------

    def start(self) -> None:
        self.pool.start()

    def stop(self, timeout: float | None = None) -> None:
        self.pool.stop(timeout)

    def __enter__(self) -> TranslationService:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()


def dump_job(job: Job) -> str:
    """Serialise a job record for display, without the subtitle body."""
    return json.dumps(
        {
            "id": job.id,
            "status": job.status.value,
            "attempts": job.attempts,
            "progress": job.progress,
            "last_error": job.last_error,
            "cancel_requested": job.cancel_requested,
            "created_at": job.created_at.isoformat() if job.created_at else None,
            "updated_at": job.updated_at.isoformat() if job.updated_at else None,
        },
        ensure_ascii=False,
        indent=2,
    )
