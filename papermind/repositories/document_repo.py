"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/document_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Repository for documents. Supports partial updates via
                DocumentPatch, soft delete, and the processing claim that
                serializes pipeline runs per document.
------------------------------------------------------------------------------
"""

import json
import sqlite3
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from papermind.errors import ConflictError, NotFoundError
from papermind.logger import get_logger
from papermind.models import (
    Document,
    DocumentPatch,
    IngestKey,
    ProcessingState,
)
from papermind.models.base import to_iso, utc_now

from .base import BaseRepository

logger = get_logger("db.documents")

_SELECT = """
    SELECT d.*,
           c.name AS correspondent_name,
           t.name AS document_type_name,
           (SELECT group_concat(dt.tag_id) FROM document_tags dt WHERE dt.document_id = d.id) AS tag_csv
    FROM documents d
    LEFT JOIN correspondents c ON c.id = d.correspondent_id
    LEFT JOIN document_types t ON t.id = d.document_type_id
"""

# Patch fields stored as JSON text
_JSON_FIELDS = {"extracted_data", "embedding"}


def _row_to_document(row: sqlite3.Row) -> Document:
    csv = row["tag_csv"]
    tag_ids = sorted(csv.split(",")) if csv else []
    return Document.from_row(row, tag_ids=tag_ids)


def _column_value(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _JSON_FIELDS:
        return json.dumps(value)
    if isinstance(value, ProcessingState):
        return value.value
    return value


class DocumentRepository(BaseRepository):
    """
    Manages access to the 'documents' and 'document_tags' tables.
    Updates never touch soft-deleted rows.
    """

    def create(self, doc: Document, ingest_key: Optional[IngestKey] = None) -> Document:
        """
        Inserts a new document, optionally together with its dedup key.

        Raises:
            ConflictError: If a document with the same checksum exists.
        """
        sql = """
        INSERT INTO documents (
            id, title, content, extracted_data, summary, embedding, state,
            original_file, archive_file, thumbnail_file, checksum, mime_type,
            file_size, page_count, source, correspondent_id, document_type_id,
            document_date, language, attempts, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        values = (
            doc.id, doc.title, doc.content, json.dumps(doc.extracted_data),
            doc.summary, json.dumps(doc.embedding) if doc.embedding is not None else None,
            doc.state.value, doc.original_file, doc.archive_file, doc.thumbnail_file,
            doc.checksum, doc.mime_type, doc.file_size, doc.page_count, doc.source.value,
            doc.correspondent_id, doc.document_type_id, doc.document_date, doc.language,
            doc.attempts, to_iso(doc.created_at), to_iso(doc.updated_at),
        )
        try:
            with self.db.transaction() as conn:
                conn.execute(sql, values)
                self._write_tags(conn, doc.id, doc.tag_ids)
                if ingest_key is not None:
                    conn.execute(
                        "INSERT INTO ingest_keys (key, source, document_id, seen_at) VALUES (?, ?, ?, ?)",
                        (ingest_key.key, ingest_key.source.value, doc.id, to_iso(ingest_key.seen_at)),
                    )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Document already exists: {e}") from e
        logger.info(f"Created document {doc.id} ({doc.source.value}): {doc.title!r}")
        return doc

    def get(self, document_id: str, include_deleted: bool = False) -> Optional[Document]:
        sql = _SELECT + " WHERE d.id = ?"
        if not include_deleted:
            sql += " AND d.deleted_at IS NULL"
        row = self.db.query_one(sql, (document_id,))
        return _row_to_document(row) if row else None

    def require(self, document_id: str) -> Document:
        """Like get(), but raises NotFoundError for missing or trashed documents."""
        doc = self.get(document_id)
        if doc is None:
            raise NotFoundError(f"Document not found: {document_id}")
        return doc

    def get_by_checksum(self, checksum: str) -> Optional[Document]:
        row = self.db.query_one(_SELECT + " WHERE d.checksum = ?", (checksum,))
        return _row_to_document(row) if row else None

    def exists(self, document_id: str) -> bool:
        row = self.db.query_one(
            "SELECT 1 FROM documents WHERE id = ? AND deleted_at IS NULL", (document_id,)
        )
        return row is not None

    def update(self, document_id: str, patch: DocumentPatch) -> bool:
        """
        Writes the present fields of a patch.

        Returns:
            False if the document is missing or soft-deleted (the update is ignored).
        """
        fields = patch.present()
        tag_ids = fields.pop("tag_ids", None)
        has_tags = "tag_ids" in patch.model_fields_set

        assignments = [f"{name} = ?" for name in fields]
        values: List[Any] = [_column_value(name, value) for name, value in fields.items()]
        assignments.append("updated_at = ?")
        values.append(to_iso(utc_now()))

        sql = f"UPDATE documents SET {', '.join(assignments)} WHERE id = ? AND deleted_at IS NULL"
        with self.db.transaction() as conn:
            cursor = conn.execute(sql, (*values, document_id))
            if cursor.rowcount == 0:
                logger.warning(f"Ignored update for missing or deleted document {document_id}")
                return False
            if has_tags:
                conn.execute("DELETE FROM document_tags WHERE document_id = ?", (document_id,))
                self._write_tags(conn, document_id, tag_ids or [])
        return True

    def add_tags(self, document_id: str, tag_ids: Iterable[str]) -> int:
        """Unions tags into the document's tag set. Returns the number added."""
        added = 0
        with self.db.transaction() as conn:
            for tag_id in tag_ids:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO document_tags (document_id, tag_id) VALUES (?, ?)",
                    (document_id, tag_id),
                )
                added += cursor.rowcount
        return added

    def _write_tags(self, conn: sqlite3.Connection, document_id: str, tag_ids: Iterable[str]) -> None:
        for tag_id in dict.fromkeys(tag_ids):
            conn.execute(
                "INSERT OR IGNORE INTO document_tags (document_id, tag_id) VALUES (?, ?)",
                (document_id, tag_id),
            )

    # --- Queries ---

    def list_processed(self) -> List[Document]:
        rows = self.db.query(
            _SELECT + " WHERE d.state = ? AND d.deleted_at IS NULL ORDER BY d.created_at, d.rowid",
            (ProcessingState.PROCESSED.value,),
        )
        return [_row_to_document(r) for r in rows]

    def list_processed_ids(self) -> List[str]:
        rows = self.db.query(
            "SELECT id FROM documents WHERE state = ? AND deleted_at IS NULL ORDER BY created_at, rowid",
            (ProcessingState.PROCESSED.value,),
        )
        return [r["id"] for r in rows]

    def list_with_embedding(self, exclude_ids: Iterable[str] = ()) -> List[Document]:
        """Active documents that carry an embedding, minus the excluded ids."""
        excluded = set(exclude_ids)
        rows = self.db.query(
            _SELECT + " WHERE d.embedding IS NOT NULL AND d.deleted_at IS NULL"
        )
        return [_row_to_document(r) for r in rows if r["id"] not in excluded]

    def list_missing_embedding(self) -> List[str]:
        rows = self.db.query(
            "SELECT id FROM documents WHERE state = ? AND embedding IS NULL AND deleted_at IS NULL",
            (ProcessingState.PROCESSED.value,),
        )
        return [r["id"] for r in rows]

    def list_retry_candidates(self, max_attempts: int, stale_before: datetime) -> List[str]:
        """
        Unprocessed documents without a permanent failure whose claim is
        free or older than stale_before.
        """
        rows = self.db.query(
            """
            SELECT id FROM documents
            WHERE state = ? AND attempts < ? AND deleted_at IS NULL
              AND (error_kind IS NULL OR error_kind = 'transient')
              AND (processing_started_at IS NULL OR processing_started_at < ?)
            ORDER BY updated_at
            """,
            (ProcessingState.UNPROCESSED.value, max_attempts, to_iso(stale_before)),
        )
        return [r["id"] for r in rows]

    def list_trashed(self) -> List[Document]:
        rows = self.db.query(_SELECT + " WHERE d.deleted_at IS NOT NULL ORDER BY d.deleted_at DESC")
        return [_row_to_document(r) for r in rows]

    # --- Processing claim ---

    def claim(self, document_id: str, stale_before: datetime) -> bool:
        """
        Marks a document as having a pipeline run in flight.

        A claim older than stale_before is treated as abandoned (crashed run)
        and taken over.

        Returns:
            True if this caller now owns the claim.
        """
        now = to_iso(utc_now())
        cursor = self.db.execute(
            """
            UPDATE documents SET processing_started_at = ?
            WHERE id = ? AND deleted_at IS NULL
              AND (processing_started_at IS NULL OR processing_started_at < ?)
            """,
            (now, document_id, to_iso(stale_before)),
        )
        return cursor.rowcount == 1

    def release(self, document_id: str) -> None:
        self.db.execute(
            "UPDATE documents SET processing_started_at = NULL WHERE id = ?", (document_id,)
        )

    def reset_derived(self, document_id: str) -> bool:
        """Clears everything a pipeline run produces before a reprocess."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE documents
                SET state = ?, content = NULL, summary = NULL, extracted_data = NULL,
                    embedding = NULL, processing_error = NULL, error_kind = NULL,
                    attempts = 0, updated_at = ?
                WHERE id = ? AND deleted_at IS NULL
                """,
                (ProcessingState.UNPROCESSED.value, to_iso(utc_now()), document_id),
            )
            if cursor.rowcount == 0:
                return False
            conn.execute("DELETE FROM document_tags WHERE document_id = ?", (document_id,))
        return True

    def record_failure(self, document_id: str, message: str, kind: str) -> None:
        self.db.execute(
            """
            UPDATE documents
            SET state = ?, processing_error = ?, error_kind = ?, attempts = attempts + 1, updated_at = ?
            WHERE id = ? AND deleted_at IS NULL
            """,
            (ProcessingState.UNPROCESSED.value, message[:2000], kind, to_iso(utc_now()), document_id),
        )

    # --- Trash ---

    def soft_delete(self, document_id: str) -> bool:
        cursor = self.db.execute(
            "UPDATE documents SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
            (to_iso(utc_now()), document_id),
        )
        return cursor.rowcount == 1

    def restore(self, document_id: str) -> bool:
        cursor = self.db.execute(
            "UPDATE documents SET deleted_at = NULL WHERE id = ? AND deleted_at IS NOT NULL",
            (document_id,),
        )
        return cursor.rowcount == 1

    def counts(self) -> Dict[str, int]:
        rows = self.db.query(
            "SELECT state, COUNT(*) AS n FROM documents WHERE deleted_at IS NULL GROUP BY state"
        )
        return {r["state"]: r["n"] for r in rows}
