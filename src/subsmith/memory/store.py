"""Long-term context memory for a translation job.

A job's lines are embedded once and stored under the job's namespace. While
translating, each line retrieves its nearest neighbours from the same job as
context. The namespace is purged when the job finishes.
"""

from __future__ import annotations

from subsmith.core.errors import CleanupError, IndexingError
from subsmith.core.models import SubtitleLine
from subsmith.memory.index import SqliteVectorIndex, VectorRecord
from subsmith.utils.console import console

NO_CONTEXT = "No relevant context found."
UPSERT_CHUNK_SIZE = 100


def namespace_for(job_id: str) -> str:
    return f"job-{job_id}"


class ContextMemoryStore:
    def __init__(
        self,
        gateway,
        vector_index: SqliteVectorIndex,
        upsert_chunk_size: int = UPSERT_CHUNK_SIZE,
        top_k: int = 5,
    ) -> None:
        self.gateway = gateway
        self.vector_index = vector_index
        self.upsert_chunk_size = min(upsert_chunk_size, UPSERT_CHUNK_SIZE)
        self.top_k = top_k

    def index(self, job_id: str, lines: list[SubtitleLine]) -> None:
        """Embed and upsert every line of a job.

        Raises:
            IndexingError: If embedding or any upsert chunk fails. The
                namespace is cleared so no partial index survives.
        """
        namespace = namespace_for(job_id)
        try:
            vectors = self.gateway.embed_batch([line.text for line in lines])
            records = [
                VectorRecord(id=f"{job_id}-{line.sequence}", values=values, text=line.text)
                for line, values in zip(lines, vectors, strict=True)
            ]
            for i in range(0, len(records), self.upsert_chunk_size):
                self.vector_index.upsert(namespace, records[i : i + self.upsert_chunk_size])
        except Exception as e:
            self._discard_partial(namespace)
            raise IndexingError(f"Failed to index script for long-term memory: {e}") from e

    def query(self, job_id: str, text: str, top_k: int | None = None) -> str:
        """Return the texts of the closest lines in this job, one per line.

        A job with nothing indexed yields :data:`NO_CONTEXT`.
        """
        k = top_k or self.top_k
        namespace = namespace_for(job_id)
        if self.vector_index.count(namespace) == 0:
            return NO_CONTEXT
        [vector] = self.gateway.embed_batch([text])
        matches = self.vector_index.query(namespace, vector, k)
        if not matches:
            return NO_CONTEXT
        return "\n".join(match.text for match in matches)

    def purge(self, job_id: str) -> None:
        """Delete the job's vectors. Failures are reported, never raised."""
        try:
            self._purge(job_id)
        except CleanupError as e:
            console.print(f"[yellow]Memory cleanup skipped for job {job_id}:[/yellow] {e}")

    def _purge(self, job_id: str) -> int:
        try:
            return self.vector_index.delete_namespace(namespace_for(job_id))
        except Exception as e:
            raise CleanupError(str(e)) from e

    def _discard_partial(self, namespace: str) -> None:
        try:
            self.vector_index.delete_namespace(namespace)
        except Exception as e:
            console.print(f"[yellow]Could not discard partial index {namespace}:[/yellow] {e}")
