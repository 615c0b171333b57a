"""Interval schedule configuration.

ステージ間隔（分）の昇順リストと、卒業後のローリング間隔（分）を保持する。
保存データが欠損・破損していれば既定値 [3d, 7d, 14d, 21d, 30d] / 30d を透過的に
使い、setter は例外を送出せず bool で成否を返す。
"""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable, Sequence

from .errors import RecordDecodeError, StorageError
from .logging import logger
from .models.records import (
    DEFAULT_ROLLING_MINUTES,
    DEFAULT_STAGE_MINUTES,
    MIN_PER_DAY,
    MIN_PER_HOUR,
    ScheduleConfigRecord,
    clean_stage_minutes,
    coerce_interval,
    decode_config,
    encode_config,
    is_valid_interval,
)
from .store.base import KeyValueStore

DEFAULT_CONFIG_KEY = "srs_config_v2"

_INTERVAL_TOKEN = re.compile(r"^(\d+)\s*([mhd])?$")
_UNIT_MINUTES = {"m": 1, "h": MIN_PER_HOUR, "d": MIN_PER_DAY}


def format_duration(minutes: int) -> str:
    """Render minutes as "3d", "1d 4h", "12h" or "45m".

    Days and hours are both shown when nonzero; the minutes part only appears
    when no larger unit does, so 90 renders as "1h".
    """

    total = max(0, int(minutes))
    days, rest = divmod(total, MIN_PER_DAY)
    hours, mins = divmod(rest, MIN_PER_HOUR)
    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if mins and not parts:
        parts.append(f"{mins}m")
    return " ".join(parts) or "0m"


def parse_interval_token(token: str) -> int | None:
    """Parse "15m" / "3h" / "2d" / "7" into minutes; a bare number means days."""

    match = _INTERVAL_TOKEN.match(str(token or "").strip().lower())
    if match is None:
        return None
    value = int(match.group(1))
    if value <= 0:
        return None
    return value * _UNIT_MINUTES[match.group(2) or "d"]


def parse_schedule_string(text: str | None) -> list[int]:
    """Parse a comma separated schedule ("1m, 10m, 1d") into sorted unique minutes.

    不正なトークンは読み飛ばす。結果が空でも既定値は補わない（呼び出し側で
    「少なくとも 1 つ入力して」と案内するため）。
    """

    if not text:
        return []
    minutes = {
        parsed
        for parsed in (parse_interval_token(tok) for tok in text.split(",") if tok.strip())
        if parsed is not None
    }
    return sorted(minutes)


def _round_days(minutes: int) -> int:
    # half-up, so 720 minutes reads as 1 day
    return int(minutes / MIN_PER_DAY + 0.5)


def describe_schedule(stage_minutes: Sequence[int], rolling_minutes: int | None = None) -> str:
    """Preview string such as "3d → 7d → every 30d"."""

    if not stage_minutes:
        return "—"
    stages = " → ".join(format_duration(m) for m in stage_minutes)
    if rolling_minutes:
        return f"{stages} → every {format_duration(rolling_minutes)}"
    return stages


class ScheduleConfig:
    """Stage / rolling interval configuration persisted in a key-value store."""

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_CONFIG_KEY) -> None:
        self._store = store
        self._key = key
        self._lock = threading.RLock()

    # --- persistence ---
    def _load(self) -> ScheduleConfigRecord:
        """Read the record; corrupt data reads as defaults, StorageError propagates."""

        raw = self._store.get(self._key)
        try:
            return decode_config(raw)
        except RecordDecodeError as exc:
            logger.warning("srs_config_corrupt", key=self._key, error=str(exc))
            return ScheduleConfigRecord()

    def _read(self) -> ScheduleConfigRecord:
        try:
            return self._load()
        except StorageError as exc:
            logger.warning("srs_config_read_failed", key=self._key, error=str(exc))
            return ScheduleConfigRecord()

    def _update(self, mutate: Callable[[ScheduleConfigRecord], None]) -> bool:
        """Read-modify-write under the lock.

        読み込みに失敗した場合は書き込まない（既存の設定を既定値で上書きしないため）。
        """

        with self._lock:
            try:
                record = self._load()
            except StorageError as exc:
                logger.warning("srs_config_read_failed", key=self._key, error=str(exc))
                return False
            mutate(record)
            return self._write(record)

    def _write(self, record: ScheduleConfigRecord) -> bool:
        try:
            ok = self._store.set(self._key, encode_config(record))
        except StorageError as exc:
            logger.warning("srs_persist_failed", key=self._key, record="config", error=str(exc))
            return False
        if not ok:
            logger.warning("srs_persist_failed", key=self._key, record="config")
        return ok

    def snapshot(self) -> ScheduleConfigRecord:
        """Return the current validated record (a fresh copy)."""

        with self._lock:
            return self._read()

    # --- minutes API ---
    def get_stage_intervals(self) -> list[int]:
        return list(self.snapshot().stage_minutes)

    def set_stage_intervals(self, values: Iterable[object]) -> bool:
        """Coerce, dedupe and sort, then persist.

        入力が空（または全て不正）の場合は現在値を維持する。未保存なら既定値が
        現在値なので、空リストが有効になることはない。
        False when the store cannot be read or written.
        """

        cleaned = clean_stage_minutes(values)

        def apply(record: ScheduleConfigRecord) -> None:
            if cleaned:
                record.stage_minutes = cleaned
            else:
                logger.info("srs_stage_intervals_empty", kept=record.stage_minutes)

        return self._update(apply)

    def get_rolling_interval(self) -> int:
        return self.snapshot().rolling_minutes

    def set_rolling_interval(self, minutes: object) -> bool:
        if not is_valid_interval(minutes):
            logger.info("srs_rolling_rejected", value=repr(minutes))
            return False

        def apply(record: ScheduleConfigRecord) -> None:
            record.rolling_minutes = int(minutes)  # type: ignore[arg-type]

        return self._update(apply)

    def update_schedule(
        self,
        stage_minutes: Iterable[object] | None = None,
        rolling_minutes: object | None = None,
    ) -> bool:
        """Apply stage and rolling changes in one write; None leaves a field as is.

        ローリング間隔が不正な場合はどちらも保存せず False を返す。
        """

        if rolling_minutes is not None and not is_valid_interval(rolling_minutes):
            logger.info("srs_rolling_rejected", value=repr(rolling_minutes))
            return False
        cleaned = clean_stage_minutes(stage_minutes) if stage_minutes is not None else []

        def apply(record: ScheduleConfigRecord) -> None:
            if cleaned:
                record.stage_minutes = cleaned
            if rolling_minutes is not None:
                record.rolling_minutes = int(rolling_minutes)  # type: ignore[call-overload]

        return self._update(apply)

    def reset_to_defaults(self) -> bool:
        with self._lock:
            return self._write(ScheduleConfigRecord())

    # --- legacy day-granularity API ---
    def get_stage_days(self) -> list[int]:
        return [_round_days(m) for m in self.get_stage_intervals()]

    def set_stage_days(self, days: Iterable[object]) -> bool:
        if isinstance(days, (str, bytes)):
            days = []
        minutes: list[int] = []
        for value in days:
            converted = coerce_interval(value)
            if converted is not None:
                minutes.append(converted * MIN_PER_DAY)
        return self.set_stage_intervals(minutes)

    def get_rolling_days(self) -> int:
        return _round_days(self.get_rolling_interval())

    def set_rolling_days(self, days: object) -> bool:
        converted = coerce_interval(days)
        if converted is None:
            return False
        return self.set_rolling_interval(converted * MIN_PER_DAY)

    # --- display ---
    format_duration = staticmethod(format_duration)

    def describe(self) -> str:
        record = self.snapshot()
        return describe_schedule(record.stage_minutes, record.rolling_minutes)


__all__ = [
    "DEFAULT_ROLLING_MINUTES",
    "DEFAULT_STAGE_MINUTES",
    "ScheduleConfig",
    "describe_schedule",
    "format_duration",
    "parse_interval_token",
    "parse_schedule_string",
]
