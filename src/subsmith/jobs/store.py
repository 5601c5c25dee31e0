"""Durable job store on SQLite.

The store is the only state shared between workers. Claiming a job is a
single ``BEGIN IMMEDIATE`` transaction, so two workers can never pick the
same job. Each claim writes a fresh token; later writes from that worker
(progress, completion, failure, retry) only apply while the token still
matches. A worker whose job was recovered by another process can no longer
finalise it.
"""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from subsmith.core.models import Job, JobPayload, JobStatus

_COLUMNS = (
    "id, status, attempts, last_error, progress, result, payload_json, "
    "cancel_requested, claim_token, created_at, updated_at, available_at"
)

STALE_FINAL_ATTEMPT_ERROR = "Worker stopped during the final attempt"


def _to_datetime(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class JobStore:
    def __init__(self, db_path: Path, clock: Callable[[], float] = time.time) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            str(self._db_path), timeout=30, check_same_thread=False, isolation_level=None
        )
        connection.row_factory = sqlite3.Row
        return connection

    def _init_db(self) -> None:
        connection = self._connect()
        try:
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    last_error TEXT,
                    progress TEXT NOT NULL DEFAULT '',
                    result TEXT,
                    payload_json TEXT NOT NULL,
                    cancel_requested INTEGER NOT NULL DEFAULT 0,
                    claim_token TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    available_at REAL NOT NULL
                )
                """
            )
            connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_jobs_ready ON jobs(status, available_at)"
            )
        finally:
            connection.close()

    def _execute(self, sql: str, params: tuple = ()) -> int:
        connection = self._connect()
        try:
            return connection.execute(sql, params).rowcount
        finally:
            connection.close()

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> Job:
        return Job(
            id=row["id"],
            payload=JobPayload.from_dict(json.loads(row["payload_json"])),
            status=JobStatus(row["status"]),
            attempts=row["attempts"],
            last_error=row["last_error"],
            progress=row["progress"],
            result=row["result"],
            cancel_requested=bool(row["cancel_requested"]),
            claim_token=row["claim_token"],
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
            available_at=_to_datetime(row["available_at"]),
        )

    # --- submission and lookup ------------------------------------------

    def create(self, payload: JobPayload) -> Job:
        """Persist a new job in the queued state."""
        job_id = uuid.uuid4().hex
        now = self._clock()
        self._execute(
            f"""
            INSERT INTO jobs({_COLUMNS})
            VALUES (?, ?, 0, NULL, ?, NULL, ?, 0, NULL, ?, ?, ?)
            """,
            (
                job_id,
                JobStatus.QUEUED.value,
                "Queued",
                json.dumps(payload.to_dict(), ensure_ascii=False),
                now,
                now,
                now,
            ),
        )
        return self.get(job_id)  # type: ignore[return-value]

    def get(self, job_id: str) -> Job | None:
        connection = self._connect()
        try:
            row = connection.execute(
                f"SELECT {_COLUMNS} FROM jobs WHERE id=?", (job_id,)
            ).fetchone()
        finally:
            connection.close()
        return self._row_to_job(row) if row else None

    def list_jobs(self, status: JobStatus | None = None, limit: int = 50) -> list[Job]:
        connection = self._connect()
        try:
            if status is None:
                rows = connection.execute(
                    f"SELECT {_COLUMNS} FROM jobs ORDER BY created_at DESC LIMIT ?", (limit,)
                ).fetchall()
            else:
                rows = connection.execute(
                    f"SELECT {_COLUMNS} FROM jobs WHERE status=? ORDER BY created_at DESC LIMIT ?",
                    (status.value, limit),
                ).fetchall()
        finally:
            connection.close()
        return [self._row_to_job(row) for row in rows]

    # --- worker side ----------------------------------------------------

    def claim(self) -> Job | None:
        """Atomically move the oldest ready job to active and return it.

        Increments ``attempts`` and issues a new claim token.
        """
        now = self._clock()
        token = uuid.uuid4().hex
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE")
            try:
                row = connection.execute(
                    """
                    SELECT id FROM jobs
                    WHERE status=? AND available_at<=?
                    ORDER BY available_at, created_at
                    LIMIT 1
                    """,
                    (JobStatus.QUEUED.value, now),
                ).fetchone()
                if row is None:
                    connection.execute("COMMIT")
                    return None
                connection.execute(
                    """
                    UPDATE jobs SET status=?, attempts=attempts+1, claim_token=?,
                        progress=?, updated_at=?
                    WHERE id=?
                    """,
                    (JobStatus.ACTIVE.value, token, "Starting", now, row["id"]),
                )
                connection.execute("COMMIT")
            except BaseException:
                connection.execute("ROLLBACK")
                raise
        finally:
            connection.close()
        return self.get(row["id"])

    def update_progress(self, job: Job, stage: str) -> bool:
        return (
            self._execute(
                "UPDATE jobs SET progress=?, updated_at=? WHERE id=? AND status=? AND claim_token=?",
                (stage, self._clock(), job.id, JobStatus.ACTIVE.value, job.claim_token),
            )
            == 1
        )

    def complete(self, job: Job, result: str) -> bool:
        """Mark an active job completed. False if this claim no longer owns it."""
        return (
            self._execute(
                """
                UPDATE jobs SET status=?, result=?, progress=?, last_error=NULL,
                    claim_token=NULL, updated_at=?
                WHERE id=? AND status=? AND claim_token=?
                """,
                (
                    JobStatus.COMPLETED.value,
                    result,
                    "Completed",
                    self._clock(),
                    job.id,
                    JobStatus.ACTIVE.value,
                    job.claim_token,
                ),
            )
            == 1
        )

    def fail(self, job: Job, error: str) -> bool:
        """Mark an active job failed for good. False if this claim no longer owns it."""
        return (
            self._execute(
                """
                UPDATE jobs SET status=?, last_error=?, progress=?, claim_token=NULL,
                    updated_at=?
                WHERE id=? AND status=? AND claim_token=?
                """,
                (
                    JobStatus.FAILED.value,
                    error,
                    "Failed",
                    self._clock(),
                    job.id,
                    JobStatus.ACTIVE.value,
                    job.claim_token,
                ),
            )
            == 1
        )

    def requeue(self, job: Job, error: str, delay: float) -> bool:
        """Put an active job back in the queue, ready after ``delay`` seconds."""
        now = self._clock()
        return (
            self._execute(
                """
                UPDATE jobs SET status=?, last_error=?, progress=?, claim_token=NULL,
                    updated_at=?, available_at=?
                WHERE id=? AND status=? AND claim_token=?
                """,
                (
                    JobStatus.QUEUED.value,
                    error,
                    f"Retrying in {delay:g}s",
                    now,
                    now + delay,
                    job.id,
                    JobStatus.ACTIVE.value,
                    job.claim_token,
                ),
            )
            == 1
        )

    def recover_stale(self, stale_after: float, max_attempts: int) -> tuple[int, list[str]]:
        """Reclaim active jobs whose worker has been silent for ``stale_after`` seconds.

        Jobs with attempts left go back to the queue; jobs that were on their
        last attempt fail.

        Returns:
            The number of requeued jobs and the ids of the jobs failed.
        """
        now = self._clock()
        cutoff = now - stale_after
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE")
            try:
                exhausted = [
                    row["id"]
                    for row in connection.execute(
                        "SELECT id FROM jobs WHERE status=? AND updated_at<=? AND attempts>=?",
                        (JobStatus.ACTIVE.value, cutoff, max_attempts),
                    ).fetchall()
                ]
                connection.executemany(
                    """
                    UPDATE jobs SET status=?, last_error=?, progress=?, claim_token=NULL,
                        updated_at=?
                    WHERE id=? AND status=?
                    """,
                    [
                        (
                            JobStatus.FAILED.value,
                            STALE_FINAL_ATTEMPT_ERROR,
                            "Failed",
                            now,
                            job_id,
                            JobStatus.ACTIVE.value,
                        )
                        for job_id in exhausted
                    ],
                )
                requeued = connection.execute(
                    """
                    UPDATE jobs SET status=?, claim_token=NULL, progress=?, available_at=?
                    WHERE status=? AND updated_at<=?
                    """,
                    (
                        JobStatus.QUEUED.value,
                        "Recovered after worker restart",
                        now,
                        JobStatus.ACTIVE.value,
                        cutoff,
                    ),
                ).rowcount
                connection.execute("COMMIT")
            except BaseException:
                connection.execute("ROLLBACK")
                raise
        finally:
            connection.close()
        return requeued, exhausted

    # --- cancellation ---------------------------------------------------

    def request_cancel(self, job_id: str, message: str) -> bool:
        """Flag a job for cancellation; a still-queued job fails immediately.

        Returns True if the job was queued and is now failed, so the caller
        owns publishing its terminal event.
        """
        now = self._clock()
        failed_now = self._execute(
            """
            UPDATE jobs SET status=?, last_error=?, progress=?, cancel_requested=1,
                updated_at=?
            WHERE id=? AND status=?
            """,
            (JobStatus.FAILED.value, message, "Failed", now, job_id, JobStatus.QUEUED.value),
        ) == 1
        self._execute(
            "UPDATE jobs SET cancel_requested=1, updated_at=? WHERE id=? AND status=?",
            (now, job_id, JobStatus.ACTIVE.value),
        )
        return failed_now

    def is_cancel_requested(self, job_id: str) -> bool:
        connection = self._connect()
        try:
            row = connection.execute(
                "SELECT cancel_requested FROM jobs WHERE id=?", (job_id,)
            ).fetchone()
        finally:
            connection.close()
        return bool(row and row["cancel_requested"])
