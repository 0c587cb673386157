from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - TASK_LOG_PATH: path of the structured task log. Default '~/todo-tasks.txt'
    - SNOOZE_MINUTES: minutes a snoozed reminder is pushed back (default: 10)
    - OVERDUE_CHECK_INTERVAL: seconds between overdue sweeps (default: 3600, 0 disables)
    - WEEK_START: 'sunday' (default) or 'monday'
    - SEED_SAMPLE_TODOS: 'true' to create sample todos when storage is empty
    - LOG_LEVEL: logging level name (default: INFO)
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    """

    persistence_backend: str
    sqlite_db_path: str
    task_log_path: str
    snooze_minutes: int
    overdue_check_interval: int
    week_start: int
    seed_sample_todos: bool
    log_level: str
    cors_allow_origins: List[str]


_WEEK_STARTS = {"monday": 0, "sunday": 6}


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    week_start_name = _get_env("WEEK_START", "sunday").strip().lower()

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/todos.db").strip(),
        task_log_path=os.path.expanduser(_get_env("TASK_LOG_PATH", "~/todo-tasks.txt").strip()),
        snooze_minutes=_parse_int(_get_env("SNOOZE_MINUTES", "10"), 10),
        overdue_check_interval=_parse_int(_get_env("OVERDUE_CHECK_INTERVAL", "3600"), 3600),
        week_start=_WEEK_STARTS.get(week_start_name, _WEEK_STARTS["sunday"]),
        seed_sample_todos=_parse_bool(_get_env("SEED_SAMPLE_TODOS", "false"), False),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
    )
