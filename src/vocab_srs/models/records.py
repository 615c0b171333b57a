"""Persisted record schemas.

KV ストアに保存する 2 つのレコード（スケジュール設定 / 学習項目）を
バージョン付きの pydantic モデルとして定義する。読み込みは厳密にパースし、
失敗した場合は既定値へフォールバックする。旧形式（エンベロープ無しの
key -> item マップ）もそのまま読める。
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from ..errors import RecordDecodeError
from ..logging import logger

MIN_PER_HOUR = 60
MIN_PER_DAY = 1440
# ~19 years; larger values are rejected as input mistakes
MAX_INTERVAL_MINUTES = 10_000_000

DEFAULT_STAGE_DAYS = (3, 7, 14, 21, 30)
DEFAULT_STAGE_MINUTES: tuple[int, ...] = tuple(d * MIN_PER_DAY for d in DEFAULT_STAGE_DAYS)
DEFAULT_ROLLING_MINUTES = 30 * MIN_PER_DAY

CONFIG_RECORD_VERSION = 2
ITEMS_RECORD_VERSION = 1

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def is_valid_interval(value: object) -> bool:
    """Return True for a positive int below the sanity bound (bools excluded)."""

    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 < value < MAX_INTERVAL_MINUTES
    )


def coerce_interval(value: object) -> int | None:
    """Coerce an integer-like input to minutes, or None when it is not usable.

    ints pass through, floats are truncated, strings use their leading integer
    ("15", " 30 ", "45min")."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        candidate = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        candidate = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match is None:
            return None
        candidate = int(match.group(1))
    else:
        return None
    return candidate if is_valid_interval(candidate) else None


def clean_stage_minutes(values: object) -> list[int]:
    """Coerce, deduplicate and sort stage intervals; the result may be empty."""

    if values is None or isinstance(values, (str, bytes, Mapping)):
        candidates: list[object] = []
    else:
        try:
            candidates = list(values)  # type: ignore[call-overload]
        except TypeError:
            candidates = []
    return sorted({n for n in (coerce_interval(v) for v in candidates) if n is not None})


def normalize_stage_minutes(values: object) -> list[int]:
    """Like clean_stage_minutes, but an empty result yields the defaults."""

    return clean_stage_minutes(values) or list(DEFAULT_STAGE_MINUTES)


def normalize_key(text: object) -> str:
    """Trim and case-fold item text into its tracking key."""

    if text is None:
        return ""
    return str(text).strip().casefold()


def now_utc() -> datetime:
    return datetime.now(UTC)


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(float(value) / 1000.0, tz=UTC)


def _lenient_timestamp(raw: object) -> datetime | None:
    """Parse epoch-ms numbers, datetimes and ISO strings; anything else is None."""

    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=UTC)
    if isinstance(raw, (int, float)):
        try:
            return from_epoch_ms(raw)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(raw, str):
        try:
            parsed = datetime.fromisoformat(raw.strip())
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


class HistoryAction(str, Enum):
    """Events appended to an item's history."""

    init = "init"
    good = "good"
    again = "again"
    migrated = "migrated"
    reschedule_stage0 = "reschedule_stage0"


class ScheduleConfigRecord(BaseModel):
    """Config record: `{"version", "stageMinutes", "rollingMinutes"}`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: int = CONFIG_RECORD_VERSION
    stage_minutes: list[int] = Field(
        default_factory=lambda: list(DEFAULT_STAGE_MINUTES),
        alias="stageMinutes",
    )
    rolling_minutes: int = Field(default=DEFAULT_ROLLING_MINUTES, alias="rollingMinutes")

    @field_validator("stage_minutes", mode="before")
    @classmethod
    def _normalise_stage_minutes(cls, raw: object) -> list[int]:
        return normalize_stage_minutes(raw)

    @field_validator("rolling_minutes", mode="before")
    @classmethod
    def _fallback_rolling_minutes(cls, raw: object) -> object:
        # 旧データの不正値は既定値で置き換える（エラーにはしない）
        return raw if is_valid_interval(raw) else DEFAULT_ROLLING_MINUTES

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class HistoryEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ts: datetime
    action: HistoryAction

    @field_validator("ts", mode="before")
    @classmethod
    def _parse_ts(cls, raw: object) -> object:
        parsed = _lenient_timestamp(raw)
        return parsed if parsed is not None else raw

    @field_serializer("ts")
    def _dump_ts(self, value: datetime) -> int:
        return to_epoch_ms(value)

    @field_serializer("action")
    def _dump_action(self, value: HistoryAction) -> str:
        return value.value


class TrackedItem(BaseModel):
    """One tracked vocabulary item.

    - key: 正規化済み（trim + casefold）の識別子
    - display: 表示用の原文。レビューのたびに更新される
    - stage: stage_minutes へのインデックス
    - due_at / added_at: UTC。保存時はエポックミリ秒。
      旧データで欠損・不正な場合は None として読み、init_for_word が修復する
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: str
    display: str
    added_at: datetime | None = Field(default=None, alias="addedAt")
    stage: int = 0
    due_at: datetime | None = Field(default=None, alias="dueAt")
    history: list[HistoryEntry] = Field(default_factory=list)

    @field_validator("added_at", "due_at", mode="before")
    @classmethod
    def _parse_timestamp(cls, raw: object) -> datetime | None:
        return _lenient_timestamp(raw)

    @field_validator("stage", mode="before")
    @classmethod
    def _repair_stage(cls, raw: object) -> int:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return 0
        if isinstance(raw, float) and not math.isfinite(raw):
            return 0
        return max(0, int(raw))

    @field_validator("history", mode="before")
    @classmethod
    def _drop_broken_history(cls, raw: object) -> list[Any]:
        """Keep only history entries that parse; a non-list becomes empty."""

        if not isinstance(raw, list):
            return []
        kept: list[Any] = []
        for entry in raw:
            try:
                kept.append(HistoryEntry.model_validate(entry))
            except ValidationError:
                continue
        return kept

    @field_serializer("added_at", "due_at")
    def _dump_timestamp(self, value: datetime | None) -> int | None:
        return None if value is None else to_epoch_ms(value)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ItemsRecord(BaseModel):
    """Items record: `{"version", "items": {key: item}}`."""

    model_config = ConfigDict(extra="ignore")

    version: int = ITEMS_RECORD_VERSION
    items: dict[str, TrackedItem] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "items": {key: item.to_wire() for key, item in self.items.items()},
        }


# --- codec ---

def _load_json(raw: bytes | str) -> Any:
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        return json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise RecordDecodeError(f"invalid JSON payload: {exc}") from exc


def _dump_json(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode_config(raw: bytes | str | None) -> ScheduleConfigRecord:
    """Parse a config record; None means "never written" and yields defaults.

    Raises RecordDecodeError when the payload is not a JSON object.
    """

    if raw is None:
        return ScheduleConfigRecord()
    payload = _load_json(raw)
    if not isinstance(payload, Mapping):
        raise RecordDecodeError("config record is not an object")
    try:
        return ScheduleConfigRecord.model_validate(payload)
    except ValidationError as exc:
        raise RecordDecodeError(str(exc)) from exc


def encode_config(record: ScheduleConfigRecord) -> bytes:
    return _dump_json(record.to_wire())


def decode_items(raw: bytes | str | None) -> ItemsRecord:
    """Parse the items record, skipping entries that cannot be repaired.

    エンベロープ（version/items）付きの現行形式と、key -> item の旧形式の
    両方を受け付ける。個々の項目のパース失敗はその項目だけを読み飛ばす。
    Raises RecordDecodeError when the payload is not a JSON object.
    """

    if raw is None:
        return ItemsRecord()
    payload = _load_json(raw)
    if not isinstance(payload, Mapping):
        raise RecordDecodeError("items record is not an object")

    if isinstance(payload.get("items"), Mapping) and "version" in payload:
        version = payload.get("version")
        raw_items: Mapping[str, Any] = payload["items"]
    else:
        version = ITEMS_RECORD_VERSION
        raw_items = payload

    items: dict[str, TrackedItem] = {}
    for map_key, raw_item in raw_items.items():
        if not isinstance(raw_item, Mapping):
            logger.warning("srs_item_skipped", key=map_key, reason="not_an_object")
            continue
        data = dict(raw_item)
        key = normalize_key(data.get("key") or map_key)
        if not key:
            logger.warning("srs_item_skipped", key=map_key, reason="empty_key")
            continue
        data["key"] = key
        display = data.get("display")
        data["display"] = str(display) if display not in (None, "") else key
        try:
            items[key] = TrackedItem.model_validate(data)
        except ValidationError as exc:
            logger.warning("srs_item_skipped", key=map_key, reason="invalid", error=str(exc))
    return ItemsRecord(
        version=version if isinstance(version, int) and not isinstance(version, bool) else ITEMS_RECORD_VERSION,
        items=items,
    )


def encode_items(record: ItemsRecord) -> bytes:
    return _dump_json(record.to_wire())
