"""Process-wide scheduler wiring for the HTTP surface.

ストア・ScheduleConfig・ReviewScheduler を設定から 1 度だけ組み立てて共有する。
テストでは `app.dependency_overrides` で差し替える。
"""

from __future__ import annotations

import threading

from fastapi import Depends

from .config import Settings, settings
from .schedule_config import ScheduleConfig
from .scheduler import ReviewScheduler
from .store import create_store

_lock = threading.Lock()
_scheduler: ReviewScheduler | None = None


def build_scheduler(config: Settings | None = None) -> ReviewScheduler:
    """Build a scheduler over the store selected by settings."""

    config = config or settings
    store = create_store(config)
    schedule = ScheduleConfig(store, key=config.srs_config_key)
    return ReviewScheduler(store, schedule, items_key=config.srs_items_key)


def get_scheduler() -> ReviewScheduler:
    global _scheduler
    if _scheduler is None:
        with _lock:
            if _scheduler is None:
                _scheduler = build_scheduler()
    return _scheduler


def get_schedule_config(scheduler: ReviewScheduler = Depends(get_scheduler)) -> ScheduleConfig:
    return scheduler.config


def reset_scheduler() -> None:
    """Drop the cached scheduler so the next request rebuilds it from settings."""

    global _scheduler
    with _lock:
        _scheduler = None
