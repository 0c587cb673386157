"""
Grouping engine: partition a todo subset into up to three nested levels of
named groups.

Each level classifies todos into group keys, ranks the keys, and either
recurses into the next configured level or, at the deepest level, attaches
the bucket sorted by the leaf sort policy. Nodes are immutable once built.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .models import Priority, Todo
from .sorting import sort_todos
from .utils import days_until, start_of_day, start_of_week


class GroupLevel(str, Enum):
    STATUS = "status"
    PRIORITY = "priority"
    PROJECT = "project"
    DATE = "date"


# PUBLIC_INTERFACE
class GroupingConfig(BaseModel):
    """
    One to three grouping levels, outermost first.
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"primary": "project", "secondary": "priority", "tertiary": None}}
    )

    primary: GroupLevel = Field(default=GroupLevel.STATUS, description="Outermost grouping level")
    secondary: Optional[GroupLevel] = Field(default=None, description="Second grouping level")
    tertiary: Optional[GroupLevel] = Field(default=None, description="Third grouping level")

    @property
    def levels(self) -> List[GroupLevel]:
        return [self.primary] + [lvl for lvl in (self.secondary, self.tertiary) if lvl is not None]

    def to_record(self) -> dict:
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class GroupSummary:
    total: int
    urgent: int
    overdue: int
    # None on status-level groups, where the label already says it
    completed: Optional[int]


@dataclass(frozen=True)
class LeafGroup:
    """A group at the deepest configured level, holding sorted todos."""

    label: str
    level: GroupLevel
    summary: GroupSummary
    todos: Tuple[Todo, ...]


@dataclass(frozen=True)
class GroupNode:
    """A group with nested child groups."""

    label: str
    level: GroupLevel
    summary: GroupSummary
    children: Tuple["Group", ...]


Group = Union[GroupNode, LeafGroup]


def is_urgent(todo: Todo, now: datetime) -> bool:
    """High priority, or due within a day (rounded up) or already overdue."""
    if todo.priority is Priority.HIGH:
        return True
    return todo.due_date is not None and days_until(todo.due_date, now) <= 1


def status_group(todo: Todo, now: datetime, week_start: int = 6) -> str:
    if todo.completed:
        return "Completed"
    if todo.due_date is not None and todo.due_date < now:
        return "Overdue"
    if is_urgent(todo, now):
        return "Urgent"
    return "Active"


def priority_group(todo: Todo, now: datetime, week_start: int = 6) -> str:
    return todo.priority.label


def project_group(todo: Todo, now: datetime, week_start: int = 6) -> str:
    return todo.project_label


def date_group(todo: Todo, now: datetime, week_start: int = 6) -> str:
    moment = todo.due_date if todo.due_date is not None else todo.created_at
    day = start_of_day(moment)
    today = start_of_day(now)
    delta = (day - today).days

    if delta == 0:
        return "Today"
    if delta == 1:
        return "Tomorrow"
    if delta == -1:
        return "Yesterday"

    this_week = start_of_week(now, week_start)
    next_week = this_week + timedelta(days=7)
    if this_week <= day < next_week:
        return "This Week"
    if next_week <= day < next_week + timedelta(days=7):
        return "Next Week"
    if delta < -1:
        return "Older"
    return "Future"


_CLASSIFIERS: Dict[GroupLevel, Callable[[Todo, datetime, int], str]] = {
    GroupLevel.STATUS: status_group,
    GroupLevel.PRIORITY: priority_group,
    GroupLevel.PROJECT: project_group,
    GroupLevel.DATE: date_group,
}

_KEY_PRECEDENCE: Dict[GroupLevel, Sequence[str]] = {
    GroupLevel.STATUS: ("Urgent", "Overdue", "Active", "Completed"),
    GroupLevel.PRIORITY: tuple(p.label for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW)),
    GroupLevel.DATE: (
        "Overdue",
        "Today",
        "Tomorrow",
        "Yesterday",
        "This Week",
        "Next Week",
        "Future",
        "Older",
    ),
}


def classify(todo: Todo, level: GroupLevel, now: datetime, week_start: int = 6) -> str:
    """Group key of todo at the given level."""
    return _CLASSIFIERS[level](todo, now, week_start)


def rank_keys(keys: Iterable[str], level: GroupLevel) -> List[str]:
    """
    Order group keys for a level: listed keys by precedence, then any others
    lexicographically. Project keys are purely lexicographic.
    """
    precedence = _KEY_PRECEDENCE.get(level, ())
    position = {key: i for i, key in enumerate(precedence)}
    return sorted(keys, key=lambda k: (position.get(k, len(precedence)), k))


def summarize(todos: Sequence[Todo], level: GroupLevel, now: datetime) -> GroupSummary:
    return GroupSummary(
        total=len(todos),
        urgent=sum(1 for t in todos if not t.completed and is_urgent(t, now)),
        overdue=sum(1 for t in todos if t.is_overdue(now)),
        completed=None if level is GroupLevel.STATUS else sum(1 for t in todos if t.completed),
    )


def _build(todos: Sequence[Todo], levels: Sequence[GroupLevel], now: datetime, week_start: int) -> List[Group]:
    level, deeper = levels[0], levels[1:]

    buckets: Dict[str, List[Todo]] = {}
    for todo in todos:
        buckets.setdefault(classify(todo, level, now, week_start), []).append(todo)

    groups: List[Group] = []
    for key in rank_keys(buckets, level):
        bucket = buckets[key]
        summary = summarize(bucket, level, now)
        if deeper:
            children = tuple(_build(bucket, deeper, now, week_start))
            groups.append(GroupNode(label=key, level=level, summary=summary, children=children))
        else:
            groups.append(LeafGroup(label=key, level=level, summary=summary, todos=tuple(sort_todos(bucket))))
    return groups


# PUBLIC_INTERFACE
def group_todos(
    todos: Iterable[Todo],
    config: GroupingConfig,
    now: datetime,
    week_start: int = 6,
) -> List[Group]:
    """
    Build the ordered forest of groups for todos under config.

    An empty input yields an empty forest.
    """
    subset = list(todos)
    if not subset:
        return []
    return _build(subset, config.levels, now, week_start)


def iter_leaf_todos(forest: Iterable[Group]) -> Iterable[Todo]:
    """Yield every todo in the forest, depth first, in display order."""
    for group in forest:
        if isinstance(group, LeafGroup):
            yield from group.todos
        else:
            yield from iter_leaf_todos(group.children)
