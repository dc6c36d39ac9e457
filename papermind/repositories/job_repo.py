"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/job_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Persistence for pollable background job status records.
------------------------------------------------------------------------------
"""

from typing import List, Optional

from papermind.models import JobState, JobStatus
from papermind.models.base import to_iso, utc_now

from .base import BaseRepository


class JobRepository(BaseRepository):

    def create(self, job: JobStatus) -> JobStatus:
        self.db.execute(
            """
            INSERT INTO jobs (id, kind, state, total, processed, affected, failed, error, started_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (job.id, job.kind.value, job.state.value, job.total, job.processed,
             job.affected, job.failed, job.error, to_iso(job.started_at)),
        )
        return job

    def get(self, job_id: str) -> Optional[JobStatus]:
        row = self.db.query_one("SELECT * FROM jobs WHERE id = ?", (job_id,))
        return JobStatus.from_row(row) if row else None

    def list_recent(self, limit: int = 20) -> List[JobStatus]:
        rows = self.db.query("SELECT * FROM jobs ORDER BY started_at DESC LIMIT ?", (limit,))
        return [JobStatus.from_row(r) for r in rows]

    def progress(self, job_id: str, processed: int = 0, affected: int = 0, failed: int = 0) -> None:
        """Increments the counters of a running job."""
        self.db.execute(
            """
            UPDATE jobs SET processed = processed + ?, affected = affected + ?, failed = failed + ?
            WHERE id = ?
            """,
            (processed, affected, failed, job_id),
        )

    def finish(self, job_id: str, state: JobState = JobState.FINISHED, error: Optional[str] = None) -> None:
        self.db.execute(
            "UPDATE jobs SET state = ?, error = ?, finished_at = ? WHERE id = ?",
            (state.value, error, to_iso(utc_now()), job_id),
        )
