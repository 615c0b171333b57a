"""Spaced-repetition scheduling for vocabulary review.

ScheduleConfig が出題間隔を、ReviewScheduler が学習項目ごとの進捗を管理する。
どちらも KeyValueStore（memory / SQLite / Firestore）へ JSON レコードとして保存する。
"""

from .errors import RecordDecodeError, StorageError, VocabSrsError
from .models.content import ContentRow
from .models.records import TrackedItem
from .models.review import ReviewOutcome
from .schedule_config import ScheduleConfig, format_duration
from .scheduler import MigrationResult, RescheduleResult, ReviewScheduler
from .store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore, create_store

__all__ = [
    "ContentRow",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "MigrationResult",
    "RecordDecodeError",
    "RescheduleResult",
    "ReviewOutcome",
    "ReviewScheduler",
    "SQLiteKeyValueStore",
    "ScheduleConfig",
    "StorageError",
    "TrackedItem",
    "VocabSrsError",
    "create_store",
    "format_duration",
]
