"""
Reminder scheduling.

A ReminderScheduler keeps at most one one-shot timer per todo id. Timers hold
only the id: when one fires, the todo is looked up again and the reminder is
dropped if the todo was deleted or completed in the meantime. Arming a todo
that already has a pending timer cancels the old timer first.

Timers are created through a factory so they can be replaced in tests; the
default factory uses daemon ``threading.Timer`` threads. A single wait never
exceeds ``max_wait`` (``threading.TIMEOUT_MAX`` by default); longer delays are
covered by a chain of waits under the same token.
"""
from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Protocol, Tuple

from .models import Todo

if TYPE_CHECKING:
    from .store import TodoStore

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE = timedelta(minutes=10)


class ReminderAction(str, Enum):
    COMPLETE = "complete"
    SNOOZE = "snooze"
    DISMISS = "dismiss"


class ReminderState(str, Enum):
    UNARMED = "unarmed"
    ARMED = "armed"
    FIRED = "fired"


@dataclass(frozen=True)
class ReminderEvent:
    todo_id: str
    text: str
    reminder: datetime
    fired_at: datetime
    actions: Tuple[ReminderAction, ...] = field(default=tuple(ReminderAction))

    @property
    def message(self) -> str:
        return f"Reminder: {self.text}"


@dataclass(frozen=True)
class OverdueEvent:
    todo_ids: Tuple[str, ...]
    message: str

    @property
    def count(self) -> int:
        return len(self.todo_ids)


# PUBLIC_INTERFACE
class Notifier(ABC):
    """Receives reminder and overdue events on behalf of the user."""

    @abstractmethod
    def notify(self, event: ReminderEvent) -> Optional[ReminderAction]:
        """
        Present a fired reminder. Return the chosen action, or None when the
        answer is not known yet (it can be given later through
        ReminderScheduler.respond).
        """

    def notify_overdue(self, event: OverdueEvent) -> None:
        logger.warning(event.message)


class QueueNotifier(Notifier):
    """
    Keeps fired reminders until someone answers them.

    At most one pending event is kept per todo; a newer event for the same
    todo replaces the older one.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._pending: Dict[str, ReminderEvent] = {}
        self._overdue: List[OverdueEvent] = []

    def notify(self, event: ReminderEvent) -> Optional[ReminderAction]:
        logger.info(f"{event.message} (todo {event.todo_id})")
        with self._lock:
            self._pending[event.todo_id] = event
        return None

    def notify_overdue(self, event: OverdueEvent) -> None:
        super().notify_overdue(event)
        with self._lock:
            self._overdue.append(event)

    def pending(self) -> List[ReminderEvent]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda e: e.fired_at)

    def pop(self, todo_id: str) -> Optional[ReminderEvent]:
        with self._lock:
            return self._pending.pop(todo_id, None)

    def overdue_events(self) -> List[OverdueEvent]:
        with self._lock:
            return list(self._overdue)


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(delay: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


# PUBLIC_INTERFACE
class ReminderScheduler:
    """
    Arms, fires and re-arms reminder timers for the todos of a TodoStore.
    """

    def __init__(
        self,
        store: "TodoStore",
        notifier: Notifier,
        *,
        now: Callable[[], datetime] = datetime.now,
        timer_factory: TimerFactory = thread_timer,
        snooze: timedelta = DEFAULT_SNOOZE,
        max_wait: float = threading.TIMEOUT_MAX,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._now = now
        self._timer_factory = timer_factory
        self._snooze = snooze
        self._max_wait = max_wait
        self._lock = threading.RLock()
        self._tokens = itertools.count(1)
        self._armed: Dict[str, Tuple[int, TimerHandle]] = {}
        self._fired: set = set()
        self._started = False

    def start(self) -> int:
        """
        Listen for reminders set through the store and arm every pending todo
        that already has a future reminder. Returns the number of timers armed.
        Calling start again does nothing.
        """
        with self._lock:
            if self._started:
                return 0
            self._started = True
        self._store.subscribe_reminders(self.arm)
        self._store.subscribe_deletions(self.forget)
        armed = 0
        for todo in self._store.list():
            if todo.reminder is not None and not todo.completed and self.arm(todo):
                armed += 1
        logger.info(f"Reminder scheduler started, {armed} reminders armed")
        return armed

    def set_reminder(self, todo_id: str, when: datetime) -> Optional[Todo]:
        """
        Record a reminder time on the todo and arm it when it lies in the
        future. Unknown ids are ignored.
        """
        todo = self._store.set_reminder(todo_id, when)
        if todo is not None and not self._started:
            self.arm(todo)
        return todo

    def arm(self, todo: Todo) -> bool:
        """Schedule a wake-up at todo.reminder. Returns False when the time is not in the future."""
        if todo.reminder is None:
            return False
        delay = (todo.reminder - self._now()).total_seconds()
        if delay <= 0:
            return False

        token = next(self._tokens)
        timer = self._wait(todo.id, token, todo.reminder, delay)
        with self._lock:
            previous = self._armed.pop(todo.id, None)
            if previous is not None:
                previous[1].cancel()
                logger.debug(f"Replaced pending reminder for todo {todo.id}")
            self._armed[todo.id] = (token, timer)
            self._fired.discard(todo.id)
        timer.start()
        logger.info(f"Reminder armed for todo {todo.id} in {delay:.0f}s")
        return True

    def _wait(self, todo_id: str, token: int, due: datetime, delay: float) -> TimerHandle:
        return self._timer_factory(min(delay, self._max_wait), partial(self._wake, todo_id, token, due))

    def _wake(self, todo_id: str, token: int, due: datetime) -> None:
        remaining = (due - self._now()).total_seconds()
        if remaining <= 0:
            self._fire(todo_id, token)
            return
        with self._lock:
            entry = self._armed.get(todo_id)
            if entry is None or entry[0] != token:
                return
            timer = self._wait(todo_id, token, due, remaining)
            self._armed[todo_id] = (token, timer)
        timer.start()
        logger.debug(f"Reminder for todo {todo_id} still {remaining:.0f}s away, waiting again")

    def forget(self, todo_id: str) -> None:
        """Cancel any pending timer for todo_id and drop its fired state."""
        with self._lock:
            entry = self._armed.pop(todo_id, None)
            self._fired.discard(todo_id)
        if entry is not None:
            entry[1].cancel()
            logger.debug(f"Pending reminder for deleted todo {todo_id} cancelled")

    def shutdown(self) -> None:
        """Cancel every pending timer."""
        with self._lock:
            entries = list(self._armed.values())
            self._armed.clear()
        for _, timer in entries:
            timer.cancel()
        logger.info(f"Reminder scheduler stopped, {len(entries)} pending reminders cancelled")

    def state(self, todo_id: str) -> ReminderState:
        with self._lock:
            if todo_id in self._armed:
                return ReminderState.ARMED
            if todo_id in self._fired:
                return ReminderState.FIRED
        return ReminderState.UNARMED

    def armed_ids(self) -> List[str]:
        with self._lock:
            return list(self._armed)

    def _fire(self, todo_id: str, token: int) -> None:
        with self._lock:
            entry = self._armed.get(todo_id)
            if entry is None or entry[0] != token:
                # Superseded by a later arm
                return
            del self._armed[todo_id]
            self._fired.add(todo_id)

        todo = self._store.get(todo_id)
        if todo is None:
            with self._lock:
                self._fired.discard(todo_id)
            logger.debug(f"Reminder for deleted todo {todo_id} dropped")
            return
        if todo.completed:
            logger.debug(f"Reminder for completed todo {todo_id} dropped")
            return

        event = ReminderEvent(
            todo_id=todo.id,
            text=todo.text,
            reminder=todo.reminder or self._now(),
            fired_at=self._now(),
        )
        action = self._notifier.notify(event)
        if action is not None:
            self.respond(todo_id, action)

    def respond(self, todo_id: str, action: ReminderAction) -> Optional[Todo]:
        """
        Carry out the answer to a fired reminder:
        - complete: mark the todo completed (a no-op if it already is)
        - snooze: set a fresh reminder ``snooze`` from now
        - dismiss: nothing; the reminder field stays set without a timer
        Returns the todo afterwards, or None when it no longer exists.
        """
        action = ReminderAction(action)
        todo = self._store.get(todo_id)
        if todo is None:
            return None
        logger.info(f"Reminder for todo {todo_id} answered with {action.value}")
        if action is ReminderAction.COMPLETE:
            return todo if todo.completed else self._store.complete(todo_id)
        if action is ReminderAction.SNOOZE:
            return self.set_reminder(todo_id, self._now() + self._snooze)
        return todo


def overdue_message(todos: List[Todo]) -> str:
    if len(todos) == 1:
        return f'You have 1 overdue todo: "{todos[0].text}"'
    return f"You have {len(todos)} overdue todos"


# PUBLIC_INTERFACE
class OverdueMonitor:
    """
    Periodically reports pending todos whose due date has passed.
    """

    def __init__(
        self,
        store: "TodoStore",
        notifier: Notifier,
        *,
        interval: float = 3600.0,
        now: Callable[[], datetime] = datetime.now,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._interval = interval
        self._now = now
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[TimerHandle] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def check(self, now: Optional[datetime] = None) -> List[Todo]:
        """Return the overdue todos, notifying when there are any."""
        now = now or self._now()
        overdue = [t for t in self._store.list() if t.is_overdue(now)]
        if overdue:
            self._notifier.notify_overdue(
                OverdueEvent(todo_ids=tuple(t.id for t in overdue), message=overdue_message(overdue))
            )
        return overdue

    def start(self) -> None:
        if self._interval <= 0:
            logger.info("Overdue monitor disabled")
            return
        with self._lock:
            if self._running:
                return
            self._running = True
        self._schedule()
        logger.info(f"Started overdue monitor (interval={self._interval:.0f}s)")

    def stop(self) -> None:
        with self._lock:
            self._running = False
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _schedule(self) -> None:
        timer = self._timer_factory(self._interval, self._tick)
        with self._lock:
            if not self._running:
                return
            self._timer = timer
        timer.start()

    def _tick(self) -> None:
        try:
            self.check()
        finally:
            if self._running:
                self._schedule()
