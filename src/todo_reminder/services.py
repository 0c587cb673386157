from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Optional

from .filters import FilterConfig
from .grouping import GroupingConfig
from .scheduler import OverdueMonitor, QueueNotifier, ReminderScheduler, TimerFactory, thread_timer
from .settings import Settings, get_settings
from .storage import FILTER_CONFIG_KEY, GROUPING_CONFIG_KEY, KeyValueStore, get_key_value_store
from .store import TodoStore
from .task_log import TaskLogWriter

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
@dataclass
class Services:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    kv: KeyValueStore
    store: TodoStore
    task_log: TaskLogWriter
    notifier: QueueNotifier
    scheduler: ReminderScheduler
    overdue_monitor: OverdueMonitor
    now: Callable[[], datetime] = datetime.now

    def load_grouping(self) -> GroupingConfig:
        return GroupingConfig.model_validate(self.kv.load(GROUPING_CONFIG_KEY, {}))

    def save_grouping(self, config: GroupingConfig) -> None:
        self.kv.save(GROUPING_CONFIG_KEY, config.to_record())

    def load_filter(self) -> FilterConfig:
        return FilterConfig.model_validate(self.kv.load(FILTER_CONFIG_KEY, {}))

    def save_filter(self, config: FilterConfig) -> None:
        self.kv.save(FILTER_CONFIG_KEY, config.to_record())

    def start(self) -> None:
        self.scheduler.start()
        self.overdue_monitor.start()

    def shutdown(self) -> None:
        self.overdue_monitor.stop()
        self.scheduler.shutdown()


# PUBLIC_INTERFACE
def build_services(
    settings: Optional[Settings] = None,
    *,
    kv: Optional[KeyValueStore] = None,
    now: Callable[[], datetime] = datetime.now,
    timer_factory: TimerFactory = thread_timer,
) -> Services:
    """
    Assemble storage, store, task log and reminder machinery from settings and
    load the stored collection. Timers are not started; call Services.start().
    """
    settings = settings or get_settings()
    kv = kv if kv is not None else get_key_value_store(settings)
    task_log = TaskLogWriter(settings.task_log_path)
    store = TodoStore(kv, task_log, now=now)
    store.load(seed_samples=settings.seed_sample_todos)

    notifier = QueueNotifier()
    scheduler = ReminderScheduler(
        store,
        notifier,
        now=now,
        timer_factory=timer_factory,
        snooze=timedelta(minutes=settings.snooze_minutes),
    )
    monitor = OverdueMonitor(
        store,
        notifier,
        interval=settings.overdue_check_interval,
        now=now,
        timer_factory=timer_factory,
    )
    return Services(
        settings=settings,
        kv=kv,
        store=store,
        task_log=task_log,
        notifier=notifier,
        scheduler=scheduler,
        overdue_monitor=monitor,
        now=now,
    )


_services: Optional[Services] = None
_services_lock = Lock()


# PUBLIC_INTERFACE
def get_services() -> Services:
    """
    FastAPI dependency returning the process-wide Services, built and started
    on first use.
    """
    global _services
    with _services_lock:
        if _services is None:
            _services = build_services()
            _services.start()
            logger.info(f"Services ready ({_services.settings.persistence_backend} storage, {len(_services.store)} todos)")
        return _services


def reset_services() -> None:
    """Stop and forget the process-wide Services."""
    global _services
    with _services_lock:
        if _services is not None:
            _services.shutdown()
        _services = None
