from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import to_local_naive

NO_PROJECT = "No Project"


# PUBLIC_INTERFACE
class Priority(str, Enum):
    """Todo priority. Ordering is high > medium > low."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def label(self) -> str:
        return f"{self.value.capitalize()} Priority"


_PRIORITY_RANK = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}


# PUBLIC_INTERFACE
class Todo(BaseModel):
    """
    The single persistent record of the system.

    Fields:
    - id: Opaque unique identifier, assigned at creation and never reused
    - text: Non-empty description
    - completed: Completion flag, toggled by the store
    - created_at: Creation timestamp, never changes
    - due_date: Optional due timestamp
    - reminder: Optional reminder timestamp; a future value means the
      scheduler holds (or will hold) a timer for this todo
    - priority: low / medium / high
    - project_name: Optional project label

    Records are serialized with camelCase aliases (``createdAt``, ``dueDate``,
    ``projectName``) so stored blobs keep their original layout. All timestamps
    are naive local datetimes.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = Field(..., min_length=1)
    completed: bool = False
    created_at: datetime = Field(..., alias="createdAt")
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    reminder: Optional[datetime] = None
    priority: Priority = Priority.MEDIUM
    project_name: Optional[str] = Field(default=None, alias="projectName")

    @field_validator("created_at", "due_date", "reminder")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else to_local_naive(v)

    @property
    def project_label(self) -> str:
        return self.project_name or NO_PROJECT

    def is_overdue(self, now: datetime) -> bool:
        """Not completed and due strictly before ``now``."""
        return not self.completed and self.due_date is not None and self.due_date < now

    def to_record(self) -> dict:
        """JSON-compatible dict for key-value storage."""
        return self.model_dump(mode="json", by_alias=True)
