"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/planner.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Reminders and todos, optionally attached to a document.
------------------------------------------------------------------------------
"""

from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from papermind.errors import NotFoundError, ValidationError
from papermind.logger import get_logger
from papermind.models import Reminder, ReminderPatch, Todo, TodoPatch, utc_now
from papermind.models.planner import PRIORITY_DEFAULT
from papermind.repositories import DocumentRepository, PlannerRepository

logger = get_logger("planner")


def _require_title(title: Optional[str]) -> str:
    clean = (title or "").strip()
    if not clean:
        raise ValidationError("Title must not be empty")
    return clean


class PlannerService:

    def __init__(self, planner: PlannerRepository, documents: DocumentRepository) -> None:
        self.planner = planner
        self.documents = documents

    def _check_document(self, document_id: Optional[str]) -> None:
        if document_id and not self.documents.exists(document_id):
            raise NotFoundError(f"Document not found: {document_id}")

    # --- Reminders ---

    def create_reminder(
        self,
        title: str,
        remind_at: datetime,
        note: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> Reminder:
        self._check_document(document_id)
        reminder = Reminder(title=_require_title(title), remind_at=remind_at, note=note, document_id=document_id)
        return self.planner.create_reminder(reminder)

    def get_reminder(self, reminder_id: str) -> Reminder:
        reminder = self.planner.get_reminder(reminder_id)
        if reminder is None:
            raise NotFoundError(f"Reminder not found: {reminder_id}")
        return reminder

    def update_reminder(self, reminder_id: str, patch: ReminderPatch) -> Reminder:
        fields = patch.present()
        if "title" in fields:
            fields["title"] = _require_title(fields["title"])
        if "remind_at" in fields and fields["remind_at"] is None:
            raise ValidationError("remind_at must not be empty")
        if "dismissed" in fields:
            fields["dismissed"] = bool(fields["dismissed"])
        if not self.planner.update_reminder(reminder_id, fields):
            raise NotFoundError(f"Reminder not found: {reminder_id}")
        return self.get_reminder(reminder_id)

    def dismiss_reminder(self, reminder_id: str) -> Reminder:
        return self.update_reminder(reminder_id, ReminderPatch(dismissed=True))

    def delete_reminder(self, reminder_id: str) -> None:
        if not self.planner.delete_reminder(reminder_id):
            raise NotFoundError(f"Reminder not found: {reminder_id}")

    def list_reminders(self, document_id: Optional[str] = None, include_dismissed: bool = False) -> List[Reminder]:
        return self.planner.list_reminders(document_id, include_dismissed)

    def pending_reminders(self, now: Optional[datetime] = None, limit: int = 10) -> List[Reminder]:
        """Due, not dismissed reminders, oldest first."""
        return self.planner.pending_reminders(now or utc_now(), limit)

    # --- Todos ---

    def create_todo(
        self,
        title: str,
        priority: int = PRIORITY_DEFAULT,
        description: Optional[str] = None,
        document_id: Optional[str] = None,
        due_date: Optional[datetime] = None,
    ) -> Todo:
        self._check_document(document_id)
        try:
            todo = Todo(
                title=_require_title(title),
                priority=priority,
                description=description,
                document_id=document_id,
                due_date=due_date,
            )
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e
        return self.planner.create_todo(todo)

    def get_todo(self, todo_id: str) -> Todo:
        todo = self.planner.get_todo(todo_id)
        if todo is None:
            raise NotFoundError(f"Todo not found: {todo_id}")
        return todo

    def update_todo(self, todo_id: str, patch: TodoPatch) -> Todo:
        """
        Applies the present fields. completed_at is set when a todo becomes
        completed and cleared when it is reopened; otherwise it is kept.
        """
        current = self.get_todo(todo_id)
        fields = patch.present()
        if "title" in fields:
            fields["title"] = _require_title(fields["title"])
        if "priority" in fields and fields["priority"] is None:
            raise ValidationError("priority must not be empty")

        if "completed" in fields:
            completed = bool(fields["completed"])
            fields["completed"] = completed
            if completed and not current.completed:
                fields["completed_at"] = utc_now()
            elif not completed and current.completed:
                fields["completed_at"] = None

        if not self.planner.update_todo(todo_id, fields):
            raise NotFoundError(f"Todo not found: {todo_id}")
        return self.get_todo(todo_id)

    def delete_todo(self, todo_id: str) -> None:
        if not self.planner.delete_todo(todo_id):
            raise NotFoundError(f"Todo not found: {todo_id}")

    def list_todos(self, document_id: Optional[str] = None, include_completed: bool = True) -> List[Todo]:
        return self.planner.list_todos(document_id, include_completed)
