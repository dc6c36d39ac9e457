"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/planner_repo.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Repository for reminders and todos.
------------------------------------------------------------------------------
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from papermind.models import Reminder, Todo
from papermind.models.base import to_iso

from .base import BaseRepository


def _db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, bool):
        return int(value)
    return value


class PlannerRepository(BaseRepository):

    # --- Reminders ---

    def create_reminder(self, reminder: Reminder) -> Reminder:
        self.db.execute(
            """
            INSERT INTO reminders (id, title, note, remind_at, dismissed, document_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (reminder.id, reminder.title, reminder.note, to_iso(reminder.remind_at),
             int(reminder.dismissed), reminder.document_id, to_iso(reminder.created_at)),
        )
        return reminder

    def get_reminder(self, reminder_id: str) -> Optional[Reminder]:
        row = self.db.query_one("SELECT * FROM reminders WHERE id = ?", (reminder_id,))
        return Reminder.from_row(row) if row else None

    def list_reminders(self, document_id: Optional[str] = None, include_dismissed: bool = False) -> List[Reminder]:
        sql = "SELECT * FROM reminders WHERE 1 = 1"
        params: List[Any] = []
        if document_id:
            sql += " AND document_id = ?"
            params.append(document_id)
        if not include_dismissed:
            sql += " AND dismissed = 0"
        sql += " ORDER BY remind_at ASC"
        return [Reminder.from_row(r) for r in self.db.query(sql, params)]

    def pending_reminders(self, now: datetime, limit: int = 10) -> List[Reminder]:
        rows = self.db.query(
            """
            SELECT * FROM reminders
            WHERE dismissed = 0 AND remind_at <= ?
            ORDER BY remind_at ASC LIMIT ?
            """,
            (to_iso(now), limit),
        )
        return [Reminder.from_row(r) for r in rows]

    def update_reminder(self, reminder_id: str, fields: Dict[str, Any]) -> bool:
        return self._update("reminders", reminder_id, fields)

    def delete_reminder(self, reminder_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,))
        return cursor.rowcount == 1

    # --- Todos ---

    def create_todo(self, todo: Todo) -> Todo:
        self.db.execute(
            """
            INSERT INTO todos (id, title, description, document_id, priority, due_date,
                               completed, completed_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (todo.id, todo.title, todo.description, todo.document_id, todo.priority,
             to_iso(todo.due_date), int(todo.completed), to_iso(todo.completed_at),
             to_iso(todo.created_at)),
        )
        return todo

    def get_todo(self, todo_id: str) -> Optional[Todo]:
        row = self.db.query_one("SELECT * FROM todos WHERE id = ?", (todo_id,))
        return Todo.from_row(row) if row else None

    def list_todos(self, document_id: Optional[str] = None, include_completed: bool = True) -> List[Todo]:
        sql = "SELECT * FROM todos WHERE 1 = 1"
        params: List[Any] = []
        if document_id:
            sql += " AND document_id = ?"
            params.append(document_id)
        if not include_completed:
            sql += " AND completed = 0"
        sql += " ORDER BY completed ASC, priority ASC, created_at ASC"
        return [Todo.from_row(r) for r in self.db.query(sql, params)]

    def update_todo(self, todo_id: str, fields: Dict[str, Any]) -> bool:
        return self._update("todos", todo_id, fields)

    def delete_todo(self, todo_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
        return cursor.rowcount == 1

    def _update(self, table: str, entity_id: str, fields: Dict[str, Any]) -> bool:
        if not fields:
            row = self.db.query_one(f"SELECT 1 FROM {table} WHERE id = ?", (entity_id,))
            return row is not None
        columns = ", ".join(f"{name} = ?" for name in fields)
        values = [_db_value(v) for v in fields.values()]
        cursor = self.db.execute(f"UPDATE {table} SET {columns} WHERE id = ?", (*values, entity_id))
        return cursor.rowcount == 1
