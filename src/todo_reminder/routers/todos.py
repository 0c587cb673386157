from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from ..filters import DateRange, FilterConfig, TodoStatus, filter_todos
from ..models import Priority
from ..schemas import PaginationEnvelope, ReminderSet, TodoCreate, TodoOut, TodoUpdate
from ..services import Services, get_services
from ..sorting import sort_todos

router = APIRouter(
    prefix="/api/v1/todos",
    tags=["todos"],
)

_NOT_FOUND = "Todo not found"


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item, record it in the task log and arm its reminder if one is given.",
    responses={
        201: {"description": "Todo created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_todo(payload: TodoCreate, services: Services = Depends(get_services)) -> TodoOut:
    """
    Create a new Todo.
    """
    if payload.reminder is not None and payload.reminder <= services.now():
        raise HTTPException(status_code=422, detail="Reminder time must be in the future")
    created = services.store.add(payload)
    return TodoOut.from_todo(created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=PaginationEnvelope,
    summary="List Todos",
    description=(
        "List todos matching optional filters, highest priority first.\n\n"
        "Query parameters:\n"
        "- status: completed, pending or overdue (repeatable)\n"
        "- priority: low, medium or high (repeatable)\n"
        "- project: project label, 'No Project' for todos without one (repeatable)\n"
        "- date_range: today, thisWeek, thisMonth, overdue, upcoming or all\n"
        "- q: search text for todo text or project (substring match)\n"
        "- limit / offset: pagination\n\n"
        "Returns a pagination envelope with items and total count."
    ),
)
def list_todos(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    status_: Optional[List[TodoStatus]] = Query(None, alias="status", description="Status classes to include"),
    priority: Optional[List[Priority]] = Query(None, description="Priorities to include"),
    project: Optional[List[str]] = Query(None, description="Project labels to include"),
    date_range: DateRange = Query(DateRange.ALL, description="Date window"),
    q: Optional[str] = Query(None, description="Search text for todo text/project"),
    services: Services = Depends(get_services),
) -> PaginationEnvelope:
    """
    List todos with pagination and filters.
    """
    config = FilterConfig(
        status=set(status_ or ()),
        priority=set(priority or ()),
        projects=set(project or ()),
        date_range=date_range,
        search_text=q.strip() if q and q.strip() else None,
    )
    matched = sort_todos(
        filter_todos(services.store.list(), config, services.now(), services.settings.week_start)
    )
    page = matched[offset : offset + limit]
    return PaginationEnvelope(
        items=[TodoOut.from_todo(t) for t in page],
        total=len(matched),
        limit=limit,
        offset=offset,
    )


# PUBLIC_INTERFACE
@router.get(
    "/log",
    response_class=PlainTextResponse,
    summary="View Task Log",
    description="Return the structured task log as plain text.",
    responses={404: {"description": "Nothing has been logged yet"}},
)
def view_task_log(services: Services = Depends(get_services)) -> PlainTextResponse:
    content = services.task_log.read()
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No task log found yet")
    return PlainTextResponse(content)


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
def get_todo(todo_id: str, services: Services = Depends(get_services)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    item = services.store.get(todo_id)
    if item is None:
        raise _not_found()
    return TodoOut.from_todo(item)


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Edit Todo",
    description="Partially update the text, priority, due date or project of a Todo item.",
    responses={
        200: {"description": "Todo updated"},
        404: {"description": "Todo not found"},
    },
)
def patch_todo(todo_id: str, payload: TodoUpdate, services: Services = Depends(get_services)) -> TodoOut:
    updated = services.store.update(todo_id, payload)
    if updated is None:
        raise _not_found()
    return TodoOut.from_todo(updated)


# PUBLIC_INTERFACE
@router.post(
    "/{todo_id}/complete",
    response_model=TodoOut,
    summary="Toggle Completion",
    description="Mark a pending Todo completed, or a completed one pending again.",
    responses={404: {"description": "Todo not found"}},
)
def complete_todo(todo_id: str, services: Services = Depends(get_services)) -> TodoOut:
    updated = services.store.complete(todo_id)
    if updated is None:
        raise _not_found()
    return TodoOut.from_todo(updated)


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}/reminder",
    response_model=TodoOut,
    summary="Set Reminder",
    description="Set the reminder time of a Todo item and arm it. The time must be in the future.",
    responses={
        404: {"description": "Todo not found"},
        422: {"description": "Reminder time is not in the future"},
    },
)
def set_reminder(todo_id: str, payload: ReminderSet, services: Services = Depends(get_services)) -> TodoOut:
    if payload.reminder <= services.now():
        raise HTTPException(status_code=422, detail="Reminder time must be in the future")
    updated = services.scheduler.set_reminder(todo_id, payload.reminder)
    if updated is None:
        raise _not_found()
    return TodoOut.from_todo(updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item by ID.",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
def delete_todo(todo_id: str, services: Services = Depends(get_services)) -> None:
    """
    Delete a Todo. Returns 204 on success, 404 if not found.
    """
    if not services.store.delete(todo_id):
        raise _not_found()
    return None
