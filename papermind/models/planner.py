"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/planner.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Reminders and todos linked to an optional document.
------------------------------------------------------------------------------
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from .base import PaperModel, PatchModel, new_id, parse_ts, utc_now

PRIORITY_URGENT = 1
PRIORITY_DEFAULT = 4
VALID_PRIORITIES = (1, 2, 3, 4)


def _check_priority(v: Optional[int]) -> Optional[int]:
    if v is not None and v not in VALID_PRIORITIES:
        raise ValueError(f"priority must be one of {VALID_PRIORITIES}")
    return v


class Reminder(PaperModel):
    id: str = Field(default_factory=new_id)
    title: str
    note: Optional[str] = None
    remind_at: datetime
    dismissed: bool = False
    document_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: Any) -> "Reminder":
        return cls(
            id=row["id"],
            title=row["title"],
            note=row["note"],
            remind_at=parse_ts(row["remind_at"]),
            dismissed=bool(row["dismissed"]),
            document_id=row["document_id"],
            created_at=parse_ts(row["created_at"]),
        )


class ReminderPatch(PatchModel):
    title: Optional[str] = None
    note: Optional[str] = None
    remind_at: Optional[datetime] = None
    dismissed: Optional[bool] = None


class Todo(PaperModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: Optional[str] = None
    document_id: Optional[str] = None
    priority: int = PRIORITY_DEFAULT
    due_date: Optional[datetime] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("priority")
    @classmethod
    def valid_priority(cls, v: Optional[int]) -> Optional[int]:
        return _check_priority(v)

    @classmethod
    def from_row(cls, row: Any) -> "Todo":
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            document_id=row["document_id"],
            priority=row["priority"],
            due_date=parse_ts(row["due_date"]),
            completed=bool(row["completed"]),
            completed_at=parse_ts(row["completed_at"]),
            created_at=parse_ts(row["created_at"]),
        )


class TodoPatch(PatchModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[int] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None

    @field_validator("priority")
    @classmethod
    def valid_priority(cls, v: Optional[int]) -> Optional[int]:
        return _check_priority(v)
