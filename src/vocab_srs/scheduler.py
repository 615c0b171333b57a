"""Spaced-repetition review scheduler.

学習項目ごとのステージ・次回出題時刻・履歴を管理し、レビュー結果
（good / again）に応じて ScheduleConfig の間隔で次回時刻を更新する。

- again: ステージを 0 に戻し、stage[0] 後に再出題
- good: 最終ステージ未満なら 1 段進めて stage[new] 後、最終ステージでは
  据え置いてローリング間隔後に再出題
- すべての公開操作は例外を送出しない。保存層の障害はログに残して
  既定値／no-op に縮退する
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TypeVar

from .errors import RecordDecodeError, StorageError
from .logging import logger
from .models.records import (
    DEFAULT_STAGE_MINUTES,
    HistoryAction,
    HistoryEntry,
    ItemsRecord,
    TrackedItem,
    decode_items,
    encode_items,
    from_epoch_ms,
    normalize_key,
    now_utc,
)
from .models.content import ContentRow
from .models.review import ReviewOutcome
from .schedule_config import ScheduleConfig
from .store.base import KeyValueStore

DEFAULT_ITEMS_KEY = "srs_items_v1"
DEFAULT_KNOWN_WORDS_KEY = "knownWords"

T = TypeVar("T")


@dataclass(frozen=True)
class MigrationResult:
    added: int


@dataclass(frozen=True)
class RescheduleResult:
    changed: int
    first_minutes: int


def _truncate_to_ms(moment: datetime) -> datetime:
    # 保存形式（エポックミリ秒）と同じ精度に揃え、読み書きで値がずれないようにする
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.replace(microsecond=(moment.microsecond // 1000) * 1000)


def _source_text(value: str | ContentRow) -> str:
    if isinstance(value, ContentRow):
        return value.front_text
    return "" if value is None else str(value)


def _resolve_at_time(at_time: datetime | int | float | None, default: datetime) -> datetime:
    if at_time is None:
        return default
    if isinstance(at_time, datetime):
        return at_time if at_time.tzinfo else at_time.replace(tzinfo=UTC)
    try:
        return from_epoch_ms(at_time)
    except (OverflowError, OSError, ValueError):
        # 範囲外は端に丸め、NaN は基準時刻として扱う
        if at_time > 0:
            return datetime.max.replace(tzinfo=UTC)
        if at_time < 0:
            return datetime.min.replace(tzinfo=UTC)
        return default


class ReviewScheduler:
    """Owns tracked items and implements the review state machine."""

    def __init__(
        self,
        store: KeyValueStore,
        config: ScheduleConfig,
        *,
        items_key: str = DEFAULT_ITEMS_KEY,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._store = store
        self._config = config
        self._items_key = items_key
        self._clock = clock
        # read → mutate → write をプロセス内で直列化する
        self._lock = threading.RLock()

    @property
    def config(self) -> ScheduleConfig:
        return self._config

    # --- low-level helpers ---
    def _now(self) -> datetime:
        return _truncate_to_ms(self._clock())

    def _stage_minutes(self) -> list[int]:
        stages = self._config.get_stage_intervals()
        return stages or list(DEFAULT_STAGE_MINUTES)

    def _load(self) -> ItemsRecord:
        """Read the items record; corrupt data reads as empty, StorageError propagates."""

        raw = self._store.get(self._items_key)
        try:
            return decode_items(raw)
        except RecordDecodeError as exc:
            logger.warning("srs_items_corrupt", key=self._items_key, error=str(exc))
            return ItemsRecord()

    def _read(self) -> ItemsRecord:
        try:
            return self._load()
        except StorageError as exc:
            logger.warning("srs_items_read_failed", key=self._items_key, error=str(exc))
            return ItemsRecord()

    def _write(self, record: ItemsRecord) -> bool:
        try:
            ok = self._store.set(self._items_key, encode_items(record))
        except StorageError as exc:
            logger.warning("srs_persist_failed", key=self._items_key, record="items", error=str(exc))
            return False
        if not ok:
            logger.warning("srs_persist_failed", key=self._items_key, record="items")
        return ok

    def _mutate(self, operation: str, apply: Callable[[ItemsRecord], T], fallback: T) -> T:
        """Run one read-modify-write cycle.

        読み込みに失敗した場合は書き込まずに fallback を返す（読めない状態で
        空のマップを保存して既存の進捗を消さないため）。書き込みに失敗した
        場合も fallback を返し、保存されていない変更を結果として報告しない。
        """

        with self._lock:
            try:
                record = self._load()
            except StorageError as exc:
                logger.warning(
                    "srs_items_read_failed",
                    key=self._items_key,
                    operation=operation,
                    error=str(exc),
                )
                return fallback
            result = apply(record)
            if not self._write(record):
                return fallback
            return result

    @staticmethod
    def _new_item(
        key: str,
        display: str,
        now: datetime,
        first_minutes: int,
        action: HistoryAction,
    ) -> TrackedItem:
        return TrackedItem(
            key=key,
            display=display,
            added_at=now,
            stage=0,
            due_at=now + timedelta(minutes=first_minutes),
            history=[HistoryEntry(ts=now, action=action)],
        )

    # --- core behaviors ---
    def init_for_word(self, text: str | ContentRow) -> None:
        """Start tracking `text` at stage 0, or repair an existing item in place.

        既存項目の進捗（stage / due_at）はリセットしない。due_at が欠損している
        旧データのみ stage[0] 後に補完する。
        """

        text = _source_text(text)
        key = normalize_key(text)
        if not key:
            return
        now = self._now()
        first = self._stage_minutes()[0]

        def apply(record: ItemsRecord) -> None:
            existing = record.items.get(key)
            if existing is None:
                record.items[key] = self._new_item(key, text, now, first, HistoryAction.init)
                logger.debug("srs_item_added", key=key)
                return
            if existing.due_at is None:
                existing.due_at = now + timedelta(minutes=first)
            if existing.added_at is None:
                existing.added_at = now

        self._mutate("init_for_word", apply, None)

    def mark_reviewed(self, text: str | ContentRow, outcome: ReviewOutcome | str) -> TrackedItem | None:
        """Apply a review outcome and return the updated snapshot.

        Untracked items are initialized first. Returns None for an empty key,
        an unknown outcome, or when the items record cannot be read or written.
        """

        text = _source_text(text)
        key = normalize_key(text)
        if not key:
            return None
        try:
            result = ReviewOutcome(outcome)
        except ValueError:
            logger.warning("srs_outcome_rejected", key=key, outcome=repr(outcome))
            return None

        now = self._now()
        stages = self._stage_minutes()
        last_index = len(stages) - 1
        rolling = self._config.get_rolling_interval()

        def apply(record: ItemsRecord) -> TrackedItem:
            item = record.items.get(key)
            if item is None:
                item = self._new_item(key, text, now, stages[0], HistoryAction.init)
                record.items[key] = item
            item.display = text

            if result is ReviewOutcome.again:
                item.stage = 0
                item.due_at = now + timedelta(minutes=stages[0])
                item.history.append(HistoryEntry(ts=now, action=HistoryAction.again))
            else:
                if item.stage < last_index:
                    item.stage = item.stage + 1
                    item.due_at = now + timedelta(minutes=stages[item.stage])
                else:
                    # 卒業済み: 最終ステージに据え置き、固定間隔で繰り返す
                    item.stage = last_index
                    item.due_at = now + timedelta(minutes=rolling)
                item.history.append(HistoryEntry(ts=now, action=HistoryAction.good))

            logger.debug(
                "srs_reviewed",
                key=key,
                outcome=result.value,
                stage=item.stage,
                due_at=item.due_at.isoformat() if item.due_at else None,
            )
            return item.model_copy(deep=True)

        return self._mutate("mark_reviewed", apply, None)

    def due_keys(self, at_time: datetime | int | float | None = None) -> list[str]:
        """Display text of every item with `due_at <= at_time` (no ordering contract)."""

        moment = _resolve_at_time(at_time, self._now())
        with self._lock:
            record = self._read()
        return [
            item.display or item.key
            for item in record.items.values()
            if item.due_at is not None and item.due_at <= moment
        ]

    def count_due(self, at_time: datetime | int | float | None = None) -> int:
        return len(self.due_keys(at_time))

    def peek(self, text: str | ContentRow) -> TrackedItem | None:
        key = normalize_key(_source_text(text))
        if not key:
            return None
        with self._lock:
            item = self._read().items.get(key)
        return item.model_copy(deep=True) if item is not None else None

    def items(self) -> list[TrackedItem]:
        """Snapshot copies of every tracked item, in storage order."""

        with self._lock:
            record = self._read()
        return [item.model_copy(deep=True) for item in record.items.values()]

    def tracked_count(self) -> int:
        with self._lock:
            return len(self._read().items)

    def clear_all(self) -> bool:
        """Discard every tracked item. Irreversible."""

        with self._lock:
            ok = self._write(ItemsRecord())
        logger.info("srs_cleared", ok=ok)
        return ok

    def migrate_from_legacy_set(self, words: Iterable[object]) -> MigrationResult:
        """Track previously "known" words at stage 0; tracked words are left alone."""

        if isinstance(words, (str, bytes)):
            words = [words]
        candidates = [w for w in words if w is not None]
        if not candidates:
            return MigrationResult(added=0)
        now = self._now()
        first = self._stage_minutes()[0]

        def apply(record: ItemsRecord) -> int:
            added = 0
            for word in candidates:
                key = normalize_key(word)
                if not key or key in record.items:
                    continue
                record.items[key] = self._new_item(key, str(word), now, first, HistoryAction.migrated)
                added += 1
            return added

        added = self._mutate("migrate_from_legacy_set", apply, 0)
        logger.info("srs_migrated", added=added, candidates=len(candidates))
        return MigrationResult(added=added)

    def migrate_from_known_words(self, key: str = DEFAULT_KNOWN_WORDS_KEY) -> MigrationResult:
        """Migrate the legacy JSON array of known words stored under `key`."""

        try:
            raw = self._store.get(key)
        except StorageError as exc:
            logger.warning("srs_known_words_read_failed", key=key, error=str(exc))
            return MigrationResult(added=0)
        if not raw:
            return MigrationResult(added=0)
        try:
            words = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            logger.warning("srs_known_words_corrupt", key=key, error=str(exc))
            return MigrationResult(added=0)
        if not isinstance(words, list):
            return MigrationResult(added=0)
        return self.migrate_from_legacy_set(w for w in words if isinstance(w, str))

    # --- utility ---
    def reschedule_stage0(self) -> RescheduleResult:
        """Apply the current first interval to every stage-0 item.

        スケジュール変更後に呼び出し、キュー済みの stage 0 項目を新しい間隔に
        揃える。stage 1 以上の項目は変更しない。失敗時は (0, 0) を返し、
        保存済みの状態には一切手を付けない。
        """

        try:
            now = self._now()
            first = self._stage_minutes()[0]
            with self._lock:
                record = self._load()
                changed = 0
                for item in record.items.values():
                    if item.stage != 0:
                        continue
                    item.due_at = now + timedelta(minutes=first)
                    item.history.append(HistoryEntry(ts=now, action=HistoryAction.reschedule_stage0))
                    changed += 1
                if not self._write(record):
                    return RescheduleResult(changed=0, first_minutes=0)
        except Exception:
            logger.warning("srs_reschedule_stage0_failed", exc_info=True)
            return RescheduleResult(changed=0, first_minutes=0)
        logger.info("srs_reschedule_stage0", changed=changed, first_minutes=first)
        return RescheduleResult(changed=changed, first_minutes=first)


__all__ = [
    "MigrationResult",
    "RescheduleResult",
    "ReviewScheduler",
]
