"""
Todo Reminder package.

Organizes todos into filtered, grouped views, schedules reminders for them,
and keeps a structured text log of created tasks. The FastAPI application
lives in ``todo_reminder.main``.
"""

__version__ = "0.1.0"
