"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/settings_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Key/value store for runtime settings (JSON values).
------------------------------------------------------------------------------
"""

from typing import Optional

from papermind.models.base import to_iso, utc_now

from .base import BaseRepository


class SettingsRepository(BaseRepository):

    def get(self, key: str) -> Optional[str]:
        row = self.db.query_one("SELECT value FROM settings WHERE key = ?", (key,))
        return row["value"] if row else None

    def put(self, key: str, value: str) -> None:
        self.db.execute(
            """
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, to_iso(utc_now())),
        )

    def delete(self, key: str) -> None:
        self.db.execute("DELETE FROM settings WHERE key = ?", (key,))
