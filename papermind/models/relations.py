"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/relations.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Undirected document relations and similarity suggestions.
------------------------------------------------------------------------------
"""

from datetime import datetime
from typing import Any, List, Tuple

from pydantic import Field

from .base import PaperModel, new_id, parse_ts, utc_now
from .document import DocumentSummary


def normalize_pair(a: str, b: str) -> Tuple[str, str]:
    """Stores a pair with the smaller id first so (a, b) == (b, a)."""
    return (a, b) if a < b else (b, a)


class DocumentRelation(PaperModel):
    id: str = Field(default_factory=new_id)
    source_id: str
    target_id: str
    relation_type: str = "related"
    created_at: datetime = Field(default_factory=utc_now)

    def other(self, document_id: str) -> str:
        return self.target_id if self.source_id == document_id else self.source_id

    @classmethod
    def from_row(cls, row: Any) -> "DocumentRelation":
        return cls(
            id=row["id"],
            source_id=row["source_id"],
            target_id=row["target_id"],
            relation_type=row["relation_type"],
            created_at=parse_ts(row["created_at"]),
        )


class RelationSuggestion(PaperModel):
    document: DocumentSummary
    similarity: float


class DuplicatePair(PaperModel):
    """Similarities in percent, one decimal place."""

    id1: str
    id2: str
    embedding_similarity: float
    text_similarity: float


class DuplicateGroup(PaperModel):
    documents: List[DocumentSummary]
    pairs: List[DuplicatePair]
    max_similarity: float
    max_text_similarity: float


class DuplicateScan(PaperModel):
    groups: List[DuplicateGroup] = Field(default_factory=list)
    scanned: int = 0
    threshold: float
