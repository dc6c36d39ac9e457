"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/vocabulary_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Find-or-create, rename and merge for the controlled vocabulary tables
                (tags, correspondents, document types).
------------------------------------------------------------------------------
"""

import sqlite3
from typing import List, Optional

from papermind.database import DatabaseManager
from papermind.logger import get_logger
from papermind.models import VocabularyEntry
from papermind.models.base import to_iso, utc_now

from .base import BaseRepository

logger = get_logger("db.vocabulary")

VOCABULARY_TABLES = ("tags", "correspondents", "document_types")
# Single-valued document references; tags live in document_tags
DOCUMENT_COLUMNS = {"correspondents": "correspondent_id", "document_types": "document_type_id"}


class VocabularyRepository(BaseRepository):
    """One instance per vocabulary table. Names are unique, case-insensitive."""

    def __init__(self, db_manager: DatabaseManager, table: str) -> None:
        super().__init__(db_manager)
        if table not in VOCABULARY_TABLES:
            raise ValueError(f"Unknown vocabulary table: {table}")
        self.table = table

    def get(self, entry_id: str) -> Optional[VocabularyEntry]:
        row = self.db.query_one(f"SELECT * FROM {self.table} WHERE id = ?", (entry_id,))
        return VocabularyEntry.from_row(row) if row else None

    def get_by_name(self, name: str) -> Optional[VocabularyEntry]:
        row = self.db.query_one(f"SELECT * FROM {self.table} WHERE name = ?", (name.strip(),))
        return VocabularyEntry.from_row(row) if row else None

    def list_all(self) -> List[VocabularyEntry]:
        rows = self.db.query(f"SELECT * FROM {self.table} ORDER BY name")
        return [VocabularyEntry.from_row(r) for r in rows]

    def find_or_create(self, name: str) -> VocabularyEntry:
        """Returns the entry with this name, creating it on first use."""
        clean = name.strip()
        if not clean:
            raise ValueError("Vocabulary name must not be empty")
        with self.db.transaction() as conn:
            existing = self.get_by_name(clean)
            if existing:
                return existing
            entry = VocabularyEntry(name=clean)
            try:
                conn.execute(
                    f"INSERT INTO {self.table} (id, name, created_at) VALUES (?, ?, ?)",
                    (entry.id, entry.name, to_iso(entry.created_at)),
                )
            except sqlite3.IntegrityError:
                # Same name inserted by another connection
                found = self.get_by_name(clean)
                if found is None:
                    raise
                return found
            return entry

    def delete(self, entry_id: str) -> bool:
        cursor = self.db.execute(f"DELETE FROM {self.table} WHERE id = ?", (entry_id,))
        return cursor.rowcount == 1

    def rename(self, entry_id: str, name: str) -> bool:
        """Raises sqlite3.IntegrityError when another entry has the name."""
        cursor = self.db.execute(f"UPDATE {self.table} SET name = ? WHERE id = ?", (name.strip(), entry_id))
        return cursor.rowcount == 1

    def merge(self, source_id: str, target_id: str) -> int:
        """
        Moves every document reference from source to target, then deletes
        source. Trashed documents are moved too, so a restore keeps them.

        Returns:
            Number of documents that referenced the source entry.
        """
        now = to_iso(utc_now())
        with self.db.transaction() as conn:
            if self.table == "tags":
                moved = conn.execute(
                    "SELECT COUNT(*) FROM document_tags WHERE tag_id = ?", (source_id,)
                ).fetchone()[0]
                conn.execute(
                    """
                    INSERT OR IGNORE INTO document_tags (document_id, tag_id)
                    SELECT document_id, ? FROM document_tags WHERE tag_id = ?
                    """,
                    (target_id, source_id),
                )
                conn.execute("DELETE FROM document_tags WHERE tag_id = ?", (source_id,))
            else:
                column = DOCUMENT_COLUMNS[self.table]
                moved = conn.execute(
                    f"UPDATE documents SET {column} = ?, updated_at = ? WHERE {column} = ?",
                    (target_id, now, source_id),
                ).rowcount
            conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (source_id,))
        logger.info(f"Merged {self.table} {source_id} into {target_id} ({moved} document(s))")
        return moved
