from __future__ import annotations


class TodoReminderError(Exception):
    """Base class for errors raised by the todo reminder core."""


class StorageError(TodoReminderError):
    """A key-value storage backend failed to read or write."""


class TaskLogError(TodoReminderError):
    """The structured task log could not be read or written."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path
