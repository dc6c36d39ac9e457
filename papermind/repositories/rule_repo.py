"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/rule_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Repository for matching rules. Active rules are always
                returned in evaluation order: sort_order, then insertion.
------------------------------------------------------------------------------
"""

import json
from typing import Any, List, Optional

from papermind.logger import get_logger
from papermind.models import MatchingRule, RulePatch
from papermind.models.base import to_iso

from .base import BaseRepository

logger = get_logger("db.rules")

_ORDER = "ORDER BY sort_order ASC, rowid ASC"
_EFFECT_COLUMNS = {"correspondents": "set_correspondent_id", "document_types": "set_document_type_id"}


class RuleRepository(BaseRepository):

    def create(self, rule: MatchingRule) -> MatchingRule:
        self.db.execute(
            """
            INSERT INTO matching_rules (
                id, name, sort_order, active, match_field, match_operator, match_value,
                set_correspondent_id, set_document_type_id, add_tag_ids, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rule.id, rule.name, rule.order, int(rule.active),
                rule.condition.field.value, rule.condition.operator.value, rule.condition.value,
                rule.set_correspondent_id, rule.set_document_type_id,
                json.dumps(rule.add_tag_ids), to_iso(rule.created_at),
            ),
        )
        logger.info(f"Created rule {rule.id} '{rule.name}' (order {rule.order})")
        return rule

    def get(self, rule_id: str) -> Optional[MatchingRule]:
        row = self.db.query_one("SELECT * FROM matching_rules WHERE id = ?", (rule_id,))
        return MatchingRule.from_row(row) if row else None

    def list_all(self) -> List[MatchingRule]:
        rows = self.db.query(f"SELECT * FROM matching_rules {_ORDER}")
        return [MatchingRule.from_row(r) for r in rows]

    def list_active(self) -> List[MatchingRule]:
        rows = self.db.query(f"SELECT * FROM matching_rules WHERE active = 1 {_ORDER}")
        return [MatchingRule.from_row(r) for r in rows]

    def update(self, rule_id: str, patch: RulePatch) -> bool:
        columns: List[str] = []
        values: List[Any] = []
        for name, value in patch.present().items():
            if name == "condition":
                columns += ["match_field = ?", "match_operator = ?", "match_value = ?"]
                values += [value.field.value, value.operator.value, value.value]
            elif name == "order":
                columns.append("sort_order = ?")
                values.append(value)
            elif name == "active":
                columns.append("active = ?")
                values.append(int(bool(value)))
            elif name == "add_tag_ids":
                columns.append("add_tag_ids = ?")
                values.append(json.dumps(value or []))
            else:
                columns.append(f"{name} = ?")
                values.append(value)
        if not columns:
            return self.get(rule_id) is not None
        cursor = self.db.execute(
            f"UPDATE matching_rules SET {', '.join(columns)} WHERE id = ?", (*values, rule_id)
        )
        return cursor.rowcount == 1

    def delete(self, rule_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM matching_rules WHERE id = ?", (rule_id,))
        return cursor.rowcount == 1

    def replace_vocabulary_reference(self, table: str, source_id: str, target_id: str) -> int:
        """
        Points rule effects at target_id where they named source_id.

        Returns:
            Number of rules changed.
        """
        if table == "tags":
            changed = 0
            with self.db.transaction() as conn:
                for rule in self.list_all():
                    if source_id not in rule.add_tag_ids:
                        continue
                    tag_ids = [target_id if t == source_id else t for t in rule.add_tag_ids]
                    conn.execute(
                        "UPDATE matching_rules SET add_tag_ids = ? WHERE id = ?",
                        (json.dumps(list(dict.fromkeys(tag_ids))), rule.id),
                    )
                    changed += 1
            return changed

        column = _EFFECT_COLUMNS[table]
        cursor = self.db.execute(
            f"UPDATE matching_rules SET {column} = ? WHERE {column} = ?", (target_id, source_id)
        )
        return cursor.rowcount
