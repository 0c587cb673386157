from __future__ import annotations

import logging
import uuid
from datetime import datetime
from threading import RLock
from typing import Callable, Dict, List, Optional

from .errors import StorageError, TaskLogError
from .models import Priority, Todo
from .schemas import TodoCreate, TodoUpdate
from .storage import TODOS_KEY, KeyValueStore
from .task_log import TaskLogWriter
from .utils import to_local_naive

logger = logging.getLogger(__name__)

ReminderListener = Callable[[Todo], None]
DeletionListener = Callable[[str], None]

_SAMPLE_TODOS = (
    ("sample-1", "Welcome to Todo Reminder!", Priority.HIGH, False),
    ("sample-2", "Add your own todos with POST /api/v1/todos/", Priority.MEDIUM, False),
    ("sample-3", "Group the view by status, priority, project or date", Priority.LOW, True),
)


def _new_id() -> str:
    return uuid.uuid4().hex


# PUBLIC_INTERFACE
class TodoStore:
    """
    Owner of the todo collection.

    The in-memory collection is the source of truth: every mutation is applied
    in memory first, then persisted through the key-value store. Storage and
    task-log failures propagate to the caller without rolling back memory.

    Mutations on an unknown id are ignored: nothing changes, nothing is
    persisted, and None (or False) is returned.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        task_log: Optional[TaskLogWriter] = None,
        *,
        now: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._lock = RLock()
        self._kv = kv
        self._task_log = task_log
        self._now = now
        self._id_factory = id_factory
        self._todos: Dict[str, Todo] = {}
        self._reminder_listeners: List[ReminderListener] = []
        self._deletion_listeners: List[DeletionListener] = []

    def load(self, seed_samples: bool = False) -> int:
        """Replace the collection with the stored one. Returns the number of todos loaded."""
        records = self._kv.load(TODOS_KEY, [])
        with self._lock:
            self._todos = {}
            for record in records:
                todo = Todo.model_validate(record)
                self._todos[todo.id] = todo
            if not self._todos and seed_samples:
                logger.info("No todos found, adding sample data")
                self._seed_samples()
            count = len(self._todos)
        logger.info(f"Loaded {count} todos")
        return count

    def _seed_samples(self) -> None:
        created = self._now()
        for todo_id, text, priority, completed in _SAMPLE_TODOS:
            self._todos[todo_id] = Todo(
                id=todo_id, text=text, priority=priority, completed=completed, created_at=created
            )
        self._persist()

    def subscribe_reminders(self, listener: ReminderListener) -> None:
        """Register a callable invoked with the todo whenever its reminder is set."""
        self._reminder_listeners.append(listener)

    def _notify_reminder(self, todo: Todo) -> None:
        for listener in self._reminder_listeners:
            listener(todo.model_copy())

    def subscribe_deletions(self, listener: DeletionListener) -> None:
        """Register a callable invoked with the id of every deleted todo."""
        self._deletion_listeners.append(listener)

    def _persist(self) -> None:
        # Snapshot and save under one lock so saves land in mutation order.
        with self._lock:
            records = [t.to_record() for t in self._todos.values()]
            self._kv.save(TODOS_KEY, records)

    def _allocate_id(self) -> str:
        todo_id = self._id_factory()
        while todo_id in self._todos:
            todo_id = self._id_factory()
        return todo_id

    def list(self) -> List[Todo]:
        """Snapshot of the collection in insertion order."""
        with self._lock:
            return [t.model_copy() for t in self._todos.values()]

    def get(self, todo_id: str) -> Optional[Todo]:
        with self._lock:
            item = self._todos.get(todo_id)
            return None if item is None else item.model_copy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._todos)

    def add(self, data: TodoCreate) -> Todo:
        """
        Create a todo, persist the collection and record it in the task log.
        A reminder supplied at creation is handed to the reminder listeners.
        """
        with self._lock:
            todo = Todo(
                id=self._allocate_id(),
                text=data.text,
                created_at=self._now(),
                due_date=data.due_date,
                reminder=data.reminder,
                priority=data.priority,
                project_name=data.project_name,
            )
            self._todos[todo.id] = todo
        logger.info(f"Added todo {todo.id} ({todo.priority.value})")
        try:
            storage_error: Optional[StorageError] = None
            try:
                self._persist()
            except StorageError as exc:
                storage_error = exc
            if self._task_log is not None:
                try:
                    self._task_log.append(todo)
                except TaskLogError:
                    if storage_error is None:
                        raise
                    logger.exception(f"Task log append also failed for todo {todo.id}")
            if storage_error is not None:
                raise storage_error
        finally:
            if todo.reminder is not None:
                self._notify_reminder(todo)
        return todo.model_copy()

    def update(self, todo_id: str, data: TodoUpdate) -> Optional[Todo]:
        """Apply only the fields present in data. Explicit nulls clear optional fields."""
        with self._lock:
            existing = self._todos.get(todo_id)
            if existing is None:
                return None
            changes = {}
            if data.text is not None:
                changes["text"] = data.text
            if data.priority is not None:
                changes["priority"] = data.priority
            if "due_date" in data.model_fields_set:
                changes["due_date"] = data.due_date
            if "project_name" in data.model_fields_set:
                changes["project_name"] = data.project_name
            updated = existing.model_copy(update=changes)
            self._todos[todo_id] = updated
        self._persist()
        return updated.model_copy()

    def complete(self, todo_id: str) -> Optional[Todo]:
        """Toggle completion. An armed reminder is left in place and checked when it fires."""
        with self._lock:
            existing = self._todos.get(todo_id)
            if existing is None:
                return None
            updated = existing.model_copy(update={"completed": not existing.completed})
            self._todos[todo_id] = updated
        logger.info(f"Todo {todo_id} marked {'completed' if updated.completed else 'pending'}")
        self._persist()
        return updated.model_copy()

    def set_reminder(self, todo_id: str, when: datetime) -> Optional[Todo]:
        """
        Set the reminder time and hand the todo to the reminder listeners.
        The time is not validated here; callers reject past times first.
        """
        with self._lock:
            existing = self._todos.get(todo_id)
            if existing is None:
                return None
            updated = existing.model_copy(update={"reminder": to_local_naive(when)})
            self._todos[todo_id] = updated
        try:
            self._persist()
        finally:
            self._notify_reminder(updated)
        return updated.model_copy()

    def delete(self, todo_id: str) -> bool:
        with self._lock:
            if self._todos.pop(todo_id, None) is None:
                return False
        logger.info(f"Deleted todo {todo_id}")
        try:
            self._persist()
        finally:
            for listener in self._deletion_listeners:
                listener(todo_id)
        return True
