from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..schemas import OverdueOut, PendingReminderOut, ReminderResponse, TodoOut
from ..scheduler import overdue_message
from ..services import Services, get_services

router = APIRouter(
    prefix="/api/v1/reminders",
    tags=["reminders"],
)


# PUBLIC_INTERFACE
@router.get(
    "/pending",
    response_model=List[PendingReminderOut],
    summary="Pending Reminders",
    description="Reminders that have fired and are waiting for an answer, oldest first.",
)
def list_pending(services: Services = Depends(get_services)) -> List[PendingReminderOut]:
    return [
        PendingReminderOut(
            todo_id=event.todo_id,
            text=event.text,
            reminder=event.reminder,
            fired_at=event.fired_at,
            actions=list(event.actions),
        )
        for event in services.notifier.pending()
    ]


# PUBLIC_INTERFACE
@router.post(
    "/{todo_id}/respond",
    response_model=TodoOut,
    summary="Answer Reminder",
    description="Complete, snooze or dismiss a fired reminder.",
    responses={404: {"description": "No pending reminder for this todo, or the todo is gone"}},
)
def respond(todo_id: str, payload: ReminderResponse, services: Services = Depends(get_services)) -> TodoOut:
    if services.notifier.pop(todo_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending reminder")
    todo = services.scheduler.respond(todo_id, payload.action)
    if todo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return TodoOut.from_todo(todo)


# PUBLIC_INTERFACE
@router.post(
    "/overdue-check",
    response_model=OverdueOut,
    summary="Check Overdue",
    description="Run the overdue sweep now and return the overdue todos.",
)
def overdue_check(services: Services = Depends(get_services)) -> OverdueOut:
    overdue = services.overdue_monitor.check()
    return OverdueOut(
        count=len(overdue),
        message=overdue_message(overdue) if overdue else None,
        items=[TodoOut.from_todo(t) for t in overdue],
    )
