from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .dates import parse_natural_date
from .filters import FilterConfig
from .grouping import GroupingConfig, GroupLevel
from .models import Priority, Todo
from .scheduler import ReminderAction
from .utils import to_local_naive

# Shared type for incoming timestamps which can be a date, datetime, ISO8601 string or a short phrase
DateInput = Union[date, datetime, str]

TEXT_MAX_LENGTH = 200
PROJECT_MAX_LENGTH = 50


def _parse_timestamp(value: Optional[DateInput], field: str) -> Optional[datetime]:
    """
    Internal helper to normalize timestamp input into a naive local datetime.
    - If value is a string, parse ISO8601 or a short phrase ("tomorrow", "next friday", "in 3 days").
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime, convert aware values to local time.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return to_local_naive(value)

    if isinstance(value, date):
        # Promote a date to a datetime at midnight
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        parsed = parse_natural_date(value)
        if parsed is None:
            raise ValueError(
                f"Invalid {field} format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or "
                "'2025-01-31T13:45:00') or a phrase like 'tomorrow', 'next friday', 'in 3 days'."
            )
        return parsed

    raise ValueError(f"Invalid type for {field}; expected date, datetime, or string.")


def _clean_text(v: str, field: str, max_length: int) -> str:
    s = v.strip()
    if not (1 <= len(s) <= max_length):
        raise ValueError(f"{field} length must be between 1 and {max_length} characters")
    return s


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": "Ship release",
                "priority": "high",
                "due_date": "2025-02-01T17:00:00",
                "project_name": "Work",
            }
        }
    )

    text: str = Field(..., description="What needs to be done", min_length=1, max_length=TEXT_MAX_LENGTH)
    priority: Priority = Field(default=Priority.MEDIUM, description="low, medium or high")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time. Accepts ISO8601 date or datetime or a short phrase; dates are set to 00:00",
    )
    project_name: Optional[str] = Field(default=None, description="Optional project label")
    reminder: Optional[datetime] = Field(default=None, description="Optional reminder time; must be in the future")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _clean_text(v, "text", TEXT_MAX_LENGTH)

    @field_validator("project_name")
    @classmethod
    def validate_project_name(cls, v: Optional[str]) -> Optional[str]:
        """Blank project names mean no project."""
        if v is None or not v.strip():
            return None
        return _clean_text(v, "project_name", PROJECT_MAX_LENGTH)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DateInput]) -> Optional[datetime]:
        return _parse_timestamp(v, "due_date")

    @field_validator("reminder", mode="before")
    @classmethod
    def parse_reminder(cls, v: Optional[DateInput]) -> Optional[datetime]:
        return _parse_timestamp(v, "reminder")


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for editing an existing Todo item.
    All fields are optional; only provided fields will be updated. Completion
    is toggled through its own endpoint and reminders are set through theirs.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": "Ship release candidate",
                "priority": "medium",
                "due_date": "2025-02-02T09:30:00",
                "project_name": None,
            }
        }
    )

    text: Optional[str] = Field(default=None, description="What needs to be done", min_length=1, max_length=TEXT_MAX_LENGTH)
    priority: Optional[Priority] = Field(default=None, description="low, medium or high")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time; null clears it")
    project_name: Optional[str] = Field(default=None, description="Project label; null clears it")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        """
        If text is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _clean_text(v, "text", TEXT_MAX_LENGTH)

    @field_validator("project_name")
    @classmethod
    def validate_project_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return _clean_text(v, "project_name", PROJECT_MAX_LENGTH)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DateInput]) -> Optional[datetime]:
        return _parse_timestamp(v, "due_date")


# PUBLIC_INTERFACE
class ReminderSet(BaseModel):
    """Schema for setting the reminder of a Todo item."""

    model_config = ConfigDict(json_schema_extra={"example": {"reminder": "2025-02-01T09:00:00"}})

    reminder: datetime = Field(..., description="When to remind; must be in the future")

    @field_validator("reminder", mode="before")
    @classmethod
    def parse_reminder(cls, v: DateInput) -> Optional[datetime]:
        return _parse_timestamp(v, "reminder")


# PUBLIC_INTERFACE
class ReminderResponse(BaseModel):
    """Answer to a fired reminder."""

    action: ReminderAction = Field(..., description="complete, snooze or dismiss")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "5f0c7d2a9b1e4c3f8a6d2e1b0c9f8a7d",
                "text": "Ship release",
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456",
                "due_date": "2025-02-01T17:00:00",
                "reminder": None,
                "priority": "high",
                "project_name": "Work",
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the todo item")
    text: str = Field(..., description="What needs to be done")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time as an ISO8601 datetime")
    reminder: Optional[datetime] = Field(default=None, description="Reminder time as an ISO8601 datetime")
    priority: Priority = Field(..., description="low, medium or high")
    project_name: Optional[str] = Field(default=None, description="Project label")

    @classmethod
    def from_todo(cls, todo: Todo) -> "TodoOut":
        return cls(**todo.model_dump())


class PaginationEnvelope(BaseModel):
    """
    Envelope for paginated list responses.
    """

    items: List[TodoOut] = Field(..., description="List of Todo items")
    total: int = Field(..., description="Total number of items matching the query")
    limit: int = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


class SummaryOut(BaseModel):
    total: int
    urgent: int
    overdue: int
    completed: Optional[int] = None


class TodoLeaf(BaseModel):
    """A single todo in the rendered tree."""

    kind: Literal["todo"] = "todo"
    todo: TodoOut


class GroupItem(BaseModel):
    """A status, priority or date group in the rendered tree."""

    kind: Literal["group"] = "group"
    label: str
    level: GroupLevel
    summary: SummaryOut
    children: List["TreeItem"]


class ProjectItem(BaseModel):
    """A project-level group in the rendered tree."""

    kind: Literal["project"] = "project"
    project_name: Optional[str] = Field(default=None, description="Project label; null for todos without a project")
    label: str
    summary: SummaryOut
    children: List["TreeItem"]


TreeItem = Annotated[Union[TodoLeaf, GroupItem, ProjectItem], Field(discriminator="kind")]

GroupItem.model_rebuild()
ProjectItem.model_rebuild()


class ViewOut(BaseModel):
    """The grouped, filtered view of the todo collection."""

    generated_at: datetime
    grouping: GroupingConfig
    filter: FilterConfig
    total: int = Field(..., description="Number of todos in the view")
    items: List[TreeItem]


class PendingReminderOut(BaseModel):
    todo_id: str
    text: str
    reminder: datetime
    fired_at: datetime
    actions: List[ReminderAction]


class OverdueOut(BaseModel):
    count: int
    message: Optional[str] = None
    items: List[TodoOut]
