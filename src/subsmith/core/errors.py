"""Error taxonomy for the translation pipeline.

Fatal errors (AiCallError, InvalidBlueprint, IndexingError) unwind to the
worker, which alone decides between retry and terminal failure. Non-fatal
kinds (ParseDegraded, CleanupError) are reported on the console and never
leave the component that raised them.
"""

from __future__ import annotations


class SubsmithError(Exception):
    """Base class for all Subsmith errors."""


class ConfigError(SubsmithError):
    """Required configuration (credentials, index name) is missing."""


class ParseDegraded(SubsmithError):
    """Structured subtitle parsing failed; naive line splitting was used."""


class AiCallError(SubsmithError):
    """Any upstream AI fault: timeout, quota, safety block, malformed JSON."""

    def __init__(self, message: str, model: str | None = None) -> None:
        super().__init__(message)
        self.model = model


class InvalidBlueprint(SubsmithError):
    """The assembled blueprint is missing its glossary."""

    def __init__(self, message: str = "AI returned an invalid blueprint") -> None:
        super().__init__(message)


class IndexingError(SubsmithError):
    """The job's lines could not be indexed into long-term memory."""


class CleanupError(SubsmithError):
    """Purging a job's memory namespace failed."""


class QueueExhausted(SubsmithError):
    """A job failed on its final allowed attempt."""

    def __init__(self, job_id: str, attempts: int, cause: str) -> None:
        super().__init__(cause)
        self.job_id = job_id
        self.attempts = attempts


class JobCancelled(SubsmithError):
    """A cancellation was requested for the running job."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} was cancelled")
        self.job_id = job_id
