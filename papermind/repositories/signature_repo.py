"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/signature_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Repository for signatures and one-time signing tokens.
------------------------------------------------------------------------------
"""

from datetime import datetime
from typing import List, Optional

from papermind.models import Signature, SigningToken
from papermind.models.base import to_iso, utc_now

from .base import BaseRepository


class SignatureRepository(BaseRepository):

    def upsert(self, signature: Signature) -> Signature:
        self.db.execute(
            """
            INSERT INTO signatures (id, name, image_file, width, height, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name, image_file = excluded.image_file,
                width = excluded.width, height = excluded.height
            """,
            (signature.id, signature.name, signature.image_file,
             signature.width, signature.height, to_iso(signature.created_at)),
        )
        return signature

    def get(self, signature_id: str) -> Optional[Signature]:
        row = self.db.query_one("SELECT * FROM signatures WHERE id = ?", (signature_id,))
        return Signature.from_row(row) if row else None

    def list_all(self) -> List[Signature]:
        rows = self.db.query("SELECT * FROM signatures ORDER BY created_at DESC")
        return [Signature.from_row(r) for r in rows]

    def delete(self, signature_id: str) -> bool:
        # signing_tokens.signature_id is ON DELETE SET NULL
        cursor = self.db.execute("DELETE FROM signatures WHERE id = ?", (signature_id,))
        return cursor.rowcount == 1

    # --- Tokens ---

    def create_token(self, token: SigningToken) -> SigningToken:
        self.db.execute(
            """
            INSERT INTO signing_tokens (token, signer_name, expires_at, used_at, signature_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (token.token, token.signer_name, to_iso(token.expires_at),
             to_iso(token.used_at), token.signature_id, to_iso(token.created_at)),
        )
        return token

    def get_token(self, token: str) -> Optional[SigningToken]:
        row = self.db.query_one("SELECT * FROM signing_tokens WHERE token = ?", (token,))
        return SigningToken.from_row(row) if row else None

    def consume_token(self, token: str, now: Optional[datetime] = None) -> bool:
        """
        Marks a token used if it is unused and unexpired.

        Returns:
            True if this call consumed the token.
        """
        ts = to_iso(now or utc_now())
        cursor = self.db.execute(
            """
            UPDATE signing_tokens SET used_at = ?
            WHERE token = ? AND used_at IS NULL AND expires_at > ?
            """,
            (ts, token, ts),
        )
        return cursor.rowcount == 1

    def bind_token(self, token: str, signature_id: str) -> None:
        self.db.execute(
            "UPDATE signing_tokens SET signature_id = ? WHERE token = ?", (signature_id, token)
        )
