"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/document.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Core domain model for a document and its vocabulary
                (tags, correspondents, document types). Defines the
                explicit patch model used for partial updates.
------------------------------------------------------------------------------
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from .base import PaperModel, PatchModel, load_json, new_id, parse_ts, utc_now

EMBEDDING_DIM = 768


class ProcessingState(str, Enum):
    UNPROCESSED = "unprocessed"
    PROCESSED = "processed"


class DocumentSource(str, Enum):
    UPLOAD = "upload"
    CONSUME = "consume"
    EMAIL = "email"


class Document(PaperModel):
    """
    A document as owned by the storage layer.

    Derived fields (content, summary, extracted_data, embedding) stay empty
    until a pipeline run succeeds.
    """

    id: str = Field(default_factory=new_id)
    title: str = ""
    content: Optional[str] = None
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    summary: Optional[str] = None
    embedding: Optional[List[float]] = None
    state: ProcessingState = ProcessingState.UNPROCESSED

    original_file: str = ""
    archive_file: Optional[str] = None
    thumbnail_file: Optional[str] = None
    checksum: Optional[str] = None
    mime_type: str = "application/pdf"
    file_size: int = 0
    page_count: Optional[int] = None
    source: DocumentSource = DocumentSource.UPLOAD

    correspondent_id: Optional[str] = None
    document_type_id: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)
    document_date: Optional[str] = None
    language: Optional[str] = None

    processing_error: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int = 0
    processing_started_at: Optional[datetime] = None

    deleted_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Joined names, read-only
    correspondent_name: Optional[str] = None
    document_type_name: Optional[str] = None

    @property
    def processed(self) -> bool:
        return self.state == ProcessingState.PROCESSED

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def current_file(self) -> str:
        """Latest PDF artifact: the archive if present, else the original."""
        return self.archive_file or self.original_file

    @classmethod
    def from_row(cls, row: Any, tag_ids: Optional[List[str]] = None) -> "Document":
        keys = row.keys()
        return cls(
            id=row["id"],
            title=row["title"] or "",
            content=row["content"],
            extracted_data=load_json(row["extracted_data"], {}),
            summary=row["summary"],
            embedding=load_json(row["embedding"], None),
            state=ProcessingState(row["state"]),
            original_file=row["original_file"],
            archive_file=row["archive_file"],
            thumbnail_file=row["thumbnail_file"],
            checksum=row["checksum"],
            mime_type=row["mime_type"],
            file_size=row["file_size"] or 0,
            page_count=row["page_count"],
            source=DocumentSource(row["source"]),
            correspondent_id=row["correspondent_id"],
            document_type_id=row["document_type_id"],
            tag_ids=tag_ids or [],
            document_date=row["document_date"],
            language=row["language"],
            processing_error=row["processing_error"],
            error_kind=row["error_kind"],
            attempts=row["attempts"] or 0,
            processing_started_at=parse_ts(row["processing_started_at"]),
            deleted_at=parse_ts(row["deleted_at"]),
            created_at=parse_ts(row["created_at"]),
            updated_at=parse_ts(row["updated_at"]),
            correspondent_name=row["correspondent_name"] if "correspondent_name" in keys else None,
            document_type_name=row["document_type_name"] if "document_type_name" in keys else None,
        )


class DocumentPatch(PatchModel):
    """Partial document update. Only fields set by the caller are written."""

    title: Optional[str] = None
    content: Optional[str] = None
    extracted_data: Optional[Dict[str, Any]] = None
    summary: Optional[str] = None
    embedding: Optional[List[float]] = None
    state: Optional[ProcessingState] = None
    archive_file: Optional[str] = None
    thumbnail_file: Optional[str] = None
    page_count: Optional[int] = None
    correspondent_id: Optional[str] = None
    document_type_id: Optional[str] = None
    tag_ids: Optional[List[str]] = None
    document_date: Optional[str] = None
    language: Optional[str] = None
    processing_error: Optional[str] = None
    error_kind: Optional[str] = None

    @field_validator("embedding")
    @classmethod
    def check_dimensions(cls, v: Optional[List[float]]) -> Optional[List[float]]:
        if v is not None and len(v) != EMBEDDING_DIM:
            raise ValueError(f"embedding must have {EMBEDDING_DIM} dimensions, got {len(v)}")
        return v


class DocumentSummary(PaperModel):
    """Compact view used in relation listings and suggestions."""

    id: str
    title: str = ""
    thumbnail_file: Optional[str] = None
    correspondent_name: Optional[str] = None
    document_type_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentSummary":
        return cls(
            id=doc.id,
            title=doc.title,
            thumbnail_file=doc.thumbnail_file,
            correspondent_name=doc.correspondent_name,
            document_type_name=doc.document_type_name,
            created_at=doc.created_at,
        )


class VocabularyEntry(PaperModel):
    """Tag, correspondent or document type."""

    id: str = Field(default_factory=new_id)
    name: str
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: Any) -> "VocabularyEntry":
        return cls(id=row["id"], name=row["name"], created_at=parse_ts(row["created_at"]))


class IngestKey(PaperModel):
    key: str
    source: DocumentSource
    document_id: Optional[str] = None
    seen_at: datetime = Field(default_factory=utc_now)


class VocabularyMerge(PaperModel):
    """Outcome of folding one vocabulary entry into another."""

    target: VocabularyEntry
    documents: int = 0
    rules: int = 0
