"""
Filter engine: reduce the todo collection to the subset matching a FilterConfig.

Every supplied field is a constraint and all constraints must hold. Fields
left empty impose nothing. The engine is a pure function of the collection,
the configuration and the evaluation instant.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from .models import NO_PROJECT, Priority, Todo
from .utils import in_window, start_of_day, start_of_month, start_of_next_month, start_of_week


class TodoStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    OVERDUE = "overdue"


class DateRange(str, Enum):
    TODAY = "today"
    THIS_WEEK = "thisWeek"
    THIS_MONTH = "thisMonth"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    ALL = "all"


# PUBLIC_INTERFACE
class FilterConfig(BaseModel):
    """
    Declarative filter over the todo collection.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "status": ["pending", "overdue"],
                "priority": ["high"],
                "projects": ["Work", "No Project"],
                "dateRange": "thisWeek",
                "searchText": "release",
            }
        },
    )

    status: Set[TodoStatus] = Field(default_factory=set, description="Allowed status classes")
    priority: Set[Priority] = Field(default_factory=set, description="Allowed priorities")
    projects: Set[str] = Field(
        default_factory=set,
        description=f"Allowed project labels; '{NO_PROJECT}' matches todos without a project",
    )
    date_range: DateRange = Field(default=DateRange.ALL, alias="dateRange")
    search_text: Optional[str] = Field(default=None, alias="searchText")

    def merge(self, other: "FilterConfig") -> "FilterConfig":
        """
        Conjunction of two configs whose constrained fields do not overlap.
        Fields set on ``other`` win over the same fields on ``self``.
        """
        data = self.model_dump()
        for name in other.model_fields_set:
            data[name] = getattr(other, name)
        return FilterConfig.model_validate(data)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def classify_status(todo: Todo, now: datetime) -> TodoStatus:
    if todo.completed:
        return TodoStatus.COMPLETED
    if todo.due_date is not None and todo.due_date < now:
        return TodoStatus.OVERDUE
    return TodoStatus.PENDING


def _matches_date_range(todo: Todo, date_range: DateRange, now: datetime, week_start: int) -> bool:
    if date_range is DateRange.ALL:
        return True
    if date_range is DateRange.OVERDUE:
        return todo.is_overdue(now)
    if date_range is DateRange.UPCOMING:
        return todo.due_date is not None and todo.due_date > now

    if date_range is DateRange.TODAY:
        start = start_of_day(now)
        end = start + timedelta(days=1)
    elif date_range is DateRange.THIS_WEEK:
        start = start_of_week(now, week_start)
        end = start + timedelta(days=7)
    else:
        start = start_of_month(now)
        end = start_of_next_month(now)
    return in_window(todo.due_date, start, end) or in_window(todo.created_at, start, end)


def _matches_search(todo: Todo, search_text: str) -> bool:
    needle = search_text.lower()
    if needle in todo.text.lower():
        return True
    return todo.project_name is not None and needle in todo.project_name.lower()


# PUBLIC_INTERFACE
def matches(todo: Todo, config: FilterConfig, now: datetime, week_start: int = 6) -> bool:
    """True when the todo satisfies every constraint in config."""
    if config.status and classify_status(todo, now) not in config.status:
        return False
    if config.priority and todo.priority not in config.priority:
        return False
    if config.projects and todo.project_label not in config.projects:
        return False
    if not _matches_date_range(todo, config.date_range, now, week_start):
        return False
    if config.search_text and not _matches_search(todo, config.search_text):
        return False
    return True


# PUBLIC_INTERFACE
def filter_todos(
    todos: Iterable[Todo],
    config: FilterConfig,
    now: datetime,
    week_start: int = 6,
) -> List[Todo]:
    """Return the todos matching config, preserving input order."""
    return [t for t in todos if matches(t, config, now, week_start)]
