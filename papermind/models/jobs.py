"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/jobs.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Pollable status record for detached batch jobs.
------------------------------------------------------------------------------
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from .base import PaperModel, new_id, parse_ts, utc_now


class JobKind(str, Enum):
    APPLY_ALL_RULES = "apply_all_rules"
    EMBEDDING_BACKFILL = "embedding_backfill"


class JobState(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


class JobStatus(PaperModel):
    id: str = Field(default_factory=new_id)
    kind: JobKind
    state: JobState = JobState.RUNNING
    total: int = 0
    processed: int = 0
    affected: int = 0
    failed: int = 0
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def done(self) -> bool:
        return self.state != JobState.RUNNING

    @classmethod
    def from_row(cls, row: Any) -> "JobStatus":
        return cls(
            id=row["id"],
            kind=JobKind(row["kind"]),
            state=JobState(row["state"]),
            total=row["total"],
            processed=row["processed"],
            affected=row["affected"],
            failed=row["failed"],
            error=row["error"],
            started_at=parse_ts(row["started_at"]),
            finished_at=parse_ts(row["finished_at"]),
        )
