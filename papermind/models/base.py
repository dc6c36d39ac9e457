"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/base.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Shared model configuration and timestamp helpers. All
                timestamps are timezone-aware UTC and stored as ISO-8601.
------------------------------------------------------------------------------
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_ts(value: Any) -> Optional[datetime]:
    """Parses a stored timestamp. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def load_json(raw: Any, default: Any) -> Any:
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


class PaperModel(BaseModel):
    """Base for all persisted entities."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, validate_assignment=True)


class PatchModel(BaseModel):
    """
    Base for partial updates. A field is present when the caller set it,
    even to None; absent fields are never written.
    """

    model_config = ConfigDict(extra="forbid")

    def present(self) -> Dict[str, Any]:
        """Returns only the explicitly set fields."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def is_empty(self) -> bool:
        return not self.model_fields_set
