#!/usr/bin/env python
"""SRS スケジュールと学習項目をローカルで管理するためのユーティリティ。"""

from __future__ import annotations

import argparse
from datetime import UTC, datetime
from typing import Sequence

from .config import settings
from .deps import build_scheduler
from .logging import configure_logging
from .models.records import is_valid_interval
from .schedule_config import format_duration, parse_interval_token, parse_schedule_string
from .scheduler import ReviewScheduler


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vocab-srs-admin", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="現在の出題間隔と追跡件数を表示する。")

    p_schedule = sub.add_parser("set-schedule", help="ステージ間隔を更新する（例: \"1m, 10m, 1d\"）。")
    p_schedule.add_argument("schedule", help="カンマ区切りの間隔。数値のみの場合は日数として扱う。")
    p_schedule.add_argument(
        "--reschedule",
        action="store_true",
        help="更新後に stage 0 の項目へ新しい初回間隔を適用する。",
    )

    p_rolling = sub.add_parser("set-rolling", help="卒業後のローリング間隔を更新する（例: 30d）。")
    p_rolling.add_argument("interval", help="15m / 3h / 2d 形式。数値のみの場合は日数。")

    sub.add_parser("reschedule-stage0", help="stage 0 の項目に現在の初回間隔を適用する。")

    p_migrate = sub.add_parser("migrate", help="旧形式の既知語を stage 0 で取り込む。")
    p_migrate.add_argument("words", nargs="*", help="取り込む語。省略時はストアの既知語リストを読む。")
    p_migrate.add_argument(
        "--from-key",
        default=settings.srs_known_words_key,
        help=f"既知語リストを保存しているキー（既定: {settings.srs_known_words_key}）。",
    )

    p_due = sub.add_parser("due", help="出題対象の項目を一覧表示する。")
    p_due.add_argument(
        "--at",
        type=datetime.fromisoformat,
        default=None,
        help="基準時刻（ISO 8601）。省略時は現在時刻。",
    )

    p_clear = sub.add_parser("clear", help="追跡中の全項目を削除する（取り消し不可）。")
    p_clear.add_argument("--yes", action="store_true", help="確認なしで削除する場合に指定。")
    return parser


def _show(scheduler: ReviewScheduler) -> int:
    config = scheduler.config
    stages = config.get_stage_intervals()
    print(f"schedule: {config.describe()}")
    print(f"stage_minutes: {', '.join(str(m) for m in stages)}")
    print(f"rolling: {format_duration(config.get_rolling_interval())}")
    print(f"tracked: {scheduler.tracked_count()}")
    print(f"due: {scheduler.count_due()}")
    return 0


def _set_schedule(scheduler: ReviewScheduler, args: argparse.Namespace) -> int:
    stages = parse_schedule_string(args.schedule)
    if not stages:
        print("Enter at least one valid interval (e.g. 15m, 3h, 2d).")
        return 2
    if not scheduler.config.set_stage_intervals(stages):
        print("Failed to save the schedule.")
        return 1
    print(f"schedule: {scheduler.config.describe()}")
    if args.reschedule:
        return _reschedule(scheduler)
    return 0


def _set_rolling(scheduler: ReviewScheduler, args: argparse.Namespace) -> int:
    minutes = parse_interval_token(args.interval)
    if minutes is None:
        print(f"Invalid interval: {args.interval!r}")
        return 2
    if not is_valid_interval(minutes):
        print(f"Interval out of range: {args.interval!r}")
        return 2
    if not scheduler.config.set_rolling_interval(minutes):
        print("Failed to save the rolling interval.")
        return 1
    print(f"rolling: {format_duration(minutes)}")
    return 0


def _reschedule(scheduler: ReviewScheduler) -> int:
    result = scheduler.reschedule_stage0()
    if result.first_minutes == 0:
        print("Failed to reschedule stage 0 items.")
        return 1
    print(f"Rescheduled {result.changed} stage 0 items to {format_duration(result.first_minutes)}.")
    return 0


def _migrate(scheduler: ReviewScheduler, args: argparse.Namespace) -> int:
    if args.words:
        result = scheduler.migrate_from_legacy_set(args.words)
    else:
        result = scheduler.migrate_from_known_words(args.from_key)
    print(f"Migrated {result.added} words.")
    return 0


def _due(scheduler: ReviewScheduler, args: argparse.Namespace) -> int:
    at_time = args.at
    if at_time is not None and at_time.tzinfo is None:
        at_time = at_time.replace(tzinfo=UTC)
    keys = scheduler.due_keys(at_time)
    for key in keys:
        print(key)
    print(f"{len(keys)} due")
    return 0


def _clear(scheduler: ReviewScheduler, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to delete every tracked item without --yes.")
        return 1
    if not scheduler.clear_all():
        print("Failed to clear tracked items.")
        return 1
    print("Cleared all tracked items.")
    return 0


def main(argv: Sequence[str] | None = None, scheduler: ReviewScheduler | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging()
    scheduler = scheduler or build_scheduler()

    if args.command == "show":
        return _show(scheduler)
    if args.command == "set-schedule":
        return _set_schedule(scheduler, args)
    if args.command == "set-rolling":
        return _set_rolling(scheduler, args)
    if args.command == "reschedule-stage0":
        return _reschedule(scheduler)
    if args.command == "migrate":
        return _migrate(scheduler, args)
    if args.command == "due":
        return _due(scheduler, args)
    return _clear(scheduler, args)


if __name__ == "__main__":
    raise SystemExit(main())
