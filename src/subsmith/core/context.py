"""Per-run context threaded through the pipeline phases."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from subsmith.core.errors import JobCancelled
from subsmith.core.events import ProgressEvent


def _never() -> bool:
    return False


@dataclass(frozen=True)
class JobContext:
    """What a phase may know about the job it runs for.

    Attributes:
        job_id: Identifier of the job, also its memory namespace and event topic.
        on_stage: Persists the stage label and publishes a progress event.
        on_event: Publishes any other event (e.g. blueprint_ready).
        is_cancelled: Returns True once cancellation has been requested.
    """

    job_id: str
    on_stage: Callable[[str], None]
    on_event: Callable[[ProgressEvent], None]
    is_cancelled: Callable[[], bool] = _never

    def report_stage(self, label: str) -> None:
        self.on_stage(label)

    def emit(self, event: ProgressEvent) -> None:
        self.on_event(event)

    def check_cancelled(self) -> None:
        """Raise JobCancelled if a cancellation request is pending."""
        if self.is_cancelled():
            raise JobCancelled(self.job_id)
