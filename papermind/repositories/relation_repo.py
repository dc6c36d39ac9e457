"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/relation_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Repository for undirected document relations. Pairs are
                stored normalized so (a, b) and (b, a) collide.
------------------------------------------------------------------------------
"""

import sqlite3
from typing import List, Optional, Set

from papermind.errors import ConflictError, ValidationError
from papermind.models import DocumentRelation, normalize_pair
from papermind.models.base import to_iso

from .base import BaseRepository


class RelationRepository(BaseRepository):

    def create(self, document_a: str, document_b: str, relation_type: str = "related") -> DocumentRelation:
        """
        Raises:
            ValidationError: For a self-relation.
            ConflictError: If the pair already exists in either direction.
        """
        if document_a == document_b:
            raise ValidationError("A document cannot be related to itself")
        source_id, target_id = normalize_pair(document_a, document_b)
        relation = DocumentRelation(source_id=source_id, target_id=target_id, relation_type=relation_type)
        try:
            self.db.execute(
                """
                INSERT INTO document_relations (id, source_id, target_id, relation_type, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (relation.id, relation.source_id, relation.target_id,
                 relation.relation_type, to_iso(relation.created_at)),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Relation already exists: {source_id} <-> {target_id}") from e
        return relation

    def get(self, relation_id: str) -> Optional[DocumentRelation]:
        row = self.db.query_one("SELECT * FROM document_relations WHERE id = ?", (relation_id,))
        return DocumentRelation.from_row(row) if row else None

    def list_for(self, document_id: str) -> List[DocumentRelation]:
        rows = self.db.query(
            """
            SELECT * FROM document_relations
            WHERE source_id = ? OR target_id = ?
            ORDER BY created_at
            """,
            (document_id, document_id),
        )
        return [DocumentRelation.from_row(r) for r in rows]

    def related_ids(self, document_id: str) -> Set[str]:
        return {rel.other(document_id) for rel in self.list_for(document_id)}

    def delete(self, relation_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM document_relations WHERE id = ?", (relation_id,))
        return cursor.rowcount == 1
