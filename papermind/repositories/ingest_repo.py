"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/ingest_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Persisted dedup set for intake artifacts (content hashes and
                email message ids).
------------------------------------------------------------------------------
"""

from datetime import datetime
from typing import Optional

from papermind.models import DocumentSource, IngestKey
from papermind.models.base import parse_ts, to_iso

from .base import BaseRepository


class IngestRepository(BaseRepository):

    def seen(self, key: str) -> bool:
        row = self.db.query_one("SELECT 1 FROM ingest_keys WHERE key = ?", (key,))
        return row is not None

    def get(self, key: str) -> Optional[IngestKey]:
        row = self.db.query_one("SELECT * FROM ingest_keys WHERE key = ?", (key,))
        if not row:
            return None
        return IngestKey(
            key=row["key"],
            source=DocumentSource(row["source"]),
            document_id=row["document_id"],
            seen_at=parse_ts(row["seen_at"]),
        )

    def mark(self, key: IngestKey) -> bool:
        """Records a key. Returns False if it was already known."""
        cursor = self.db.execute(
            "INSERT OR IGNORE INTO ingest_keys (key, source, document_id, seen_at) VALUES (?, ?, ?, ?)",
            (key.key, key.source.value, key.document_id, to_iso(key.seen_at)),
        )
        return cursor.rowcount == 1

    def prune(self, prefix: str, older_than: datetime) -> int:
        """Drops keys with the given prefix seen before the cutoff."""
        cursor = self.db.execute(
            "DELETE FROM ingest_keys WHERE key LIKE ? AND seen_at < ?",
            (f"{prefix}%", to_iso(older_than)),
        )
        return cursor.rowcount
