import itertools
from datetime import datetime, timedelta

import pytest

from todo_reminder.models import Priority, Todo

# Wednesday morning; with a Sunday week start the week runs Jan 7 .. Jan 13
NOW = datetime(2024, 1, 10, 8, 0)


class FakeClock:
    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeTimer:
    """Timer stand-in that only fires when told to."""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not (t.cancelled or t.fired)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def make_todo():
    counter = itertools.count(1)

    def _make(
        text="Task",
        *,
        priority=Priority.MEDIUM,
        completed=False,
        created_at=datetime(2023, 12, 1, 9, 0),
        due_date=None,
        reminder=None,
        project_name=None,
        todo_id=None,
    ):
        return Todo(
            id=todo_id or f"todo-{next(counter)}",
            text=text,
            priority=priority,
            completed=completed,
            created_at=created_at,
            due_date=due_date,
            reminder=reminder,
            project_name=project_name,
        )

    return _make
