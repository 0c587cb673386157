"""
Structured task log: a plain text ledger of created todos, grouped by the
day they were created and then by project::

    Wednesday, January 10, 2024's tasks:

    #Work
    - Ship release
    - Write notes

    #General
    - Buy milk

Lines are only ever inserted, never rewritten. Section boundaries are found by
literal markers (a trailing "'s tasks:" for dates, a leading '#' for projects,
a leading '-' for tasks), so task text that contains these markers can confuse
later insertions.
"""
from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .errors import TaskLogError
from .models import Todo

logger = logging.getLogger(__name__)

DATE_HEADER_SUFFIX = "'s tasks:"
DEFAULT_PROJECT = "General"
LOG_PREAMBLE = "# Todo Tasks Log\n# Generated by Todo Reminder\n\n"

_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def format_long_date(value: datetime) -> str:
    """'Wednesday, January 10, 2024', independent of the process locale."""
    return f"{_WEEKDAYS[value.weekday()]}, {_MONTHS[value.month - 1]} {value.day}, {value.year}"


def date_header(todo: Todo) -> str:
    return f"{format_long_date(todo.created_at)}{DATE_HEADER_SUFFIX}"


def project_header(todo: Todo) -> str:
    return f"#{todo.project_name or DEFAULT_PROJECT}"


def _is_date_header(line: str) -> bool:
    return line.endswith(DATE_HEADER_SUFFIX)


# PUBLIC_INTERFACE
def insert_task(lines: List[str], todo: Todo) -> List[str]:
    """
    Return a copy of lines with the todo's task line placed under its date
    section and project subsection, creating either section when missing.
    """
    lines = list(lines)
    dated = date_header(todo)
    project = project_header(todo)

    # Date section
    try:
        date_index = lines.index(dated)
    except ValueError:
        lines.extend(["", dated, ""])
        date_index = len(lines) - 2

    # Project subsection within this date
    project_index: Optional[int] = None
    for i in range(date_index + 1, len(lines)):
        if lines[i] == project:
            project_index = i
            break
        if _is_date_header(lines[i]):
            break

    if project_index is None:
        # After the last subsection of this date, before the next date
        insert_at = date_index + 1
        for i in range(date_index + 1, len(lines)):
            if _is_date_header(lines[i]):
                insert_at = i
                break
            if lines[i].startswith("#") or lines[i].startswith("-"):
                insert_at = i + 1
        lines[insert_at:insert_at] = ["", project]
        project_index = insert_at + 1

    # Append below the tasks already listed under the project header
    task_at = project_index + 1
    while task_at < len(lines) and lines[task_at].startswith("-"):
        task_at += 1
    lines.insert(task_at, f"- {todo.text}")
    return lines


# PUBLIC_INTERFACE
class TaskLogWriter:
    """
    Read-modify-write access to the task log file.

    Every call re-reads the file, so edits made by hand between calls are
    preserved. A missing file is started with a two-line comment preamble.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Optional[str]:
        """Current log content, or None when nothing has been logged yet."""
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise TaskLogError(str(self.path), "Cannot read task log") from exc

    def append(self, todo: Todo) -> None:
        content = self.read()
        if content is None:
            content = LOG_PREAMBLE
        updated = "\n".join(insert_task(content.split("\n"), todo))
        self._write(updated)
        logger.info(f"Task logged to file: {self.path}")

    def _write(self, content: str) -> None:
        """Atomically replace the log file."""
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(directory))
        except OSError as exc:
            raise TaskLogError(str(self.path), "Cannot write task log") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise TaskLogError(str(self.path), "Cannot write task log") from exc
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
