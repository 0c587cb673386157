from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Tuple

from .models import Todo

_NO_DUE_DATE = datetime.min


# PUBLIC_INTERFACE
def sort_key(todo: Todo) -> Tuple[int, bool, datetime, datetime]:
    """
    Key for the leaf ordering of todos:
    1. priority, high first
    2. due date ascending, todos without one after all that have one
    3. creation time ascending
    """
    has_no_due = todo.due_date is None
    return (
        -todo.priority.rank,
        has_no_due,
        _NO_DUE_DATE if has_no_due else todo.due_date,
        todo.created_at,
    )


# PUBLIC_INTERFACE
def sort_todos(todos: Iterable[Todo]) -> List[Todo]:
    """Return a new list ordered by sort_key."""
    return sorted(todos, key=sort_key)


def compare(a: Todo, b: Todo) -> int:
    """Three-way comparison: negative if a sorts first, positive if b does, 0 on a full tie."""
    ka, kb = sort_key(a), sort_key(b)
    return (ka > kb) - (ka < kb)
