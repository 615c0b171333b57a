import json

import pytest

from vocab_srs.models.records import DEFAULT_ROLLING_MINUTES, DEFAULT_STAGE_MINUTES
from vocab_srs.schedule_config import (
    DEFAULT_CONFIG_KEY,
    ScheduleConfig,
    describe_schedule,
    format_duration,
    parse_interval_token,
    parse_schedule_string,
)


def test_fresh_config_uses_defaults(config):
    assert config.get_stage_intervals() == [4320, 10080, 20160, 30240, 43200]
    assert config.get_rolling_interval() == 43200
    assert list(DEFAULT_STAGE_MINUTES) == config.get_stage_intervals()
    assert DEFAULT_ROLLING_MINUTES == 43200


def test_set_stage_intervals_dedupes_sorts_and_drops_junk(config):
    assert config.set_stage_intervals([30, "15", 15, -1, "junk", 0, 2.9, None, True]) is True
    assert config.get_stage_intervals() == [2, 15, 30]


@pytest.mark.parametrize(
    "values",
    [
        [60, 10, 1440],
        [5, 5, 5],
        [10_000, 1, 600],
    ],
)
def test_set_then_get_returns_sorted_unique(config, values):
    assert config.set_stage_intervals(values)
    assert config.get_stage_intervals() == sorted(set(values))


def test_empty_stage_list_keeps_previous_value(config):
    assert config.set_stage_intervals([10, 20])
    assert config.set_stage_intervals([]) is True
    assert config.get_stage_intervals() == [10, 20]

    assert config.set_stage_intervals(["nope", -3])
    assert config.get_stage_intervals() == [10, 20]


def test_empty_stage_list_on_fresh_config_yields_defaults(config):
    assert config.set_stage_intervals([])
    assert config.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)


@pytest.mark.parametrize("bad", [0, -5, 10_000_000, True, "60", 1.5, None])
def test_set_rolling_interval_rejects_invalid_values(config, bad):
    assert config.set_rolling_interval(bad) is False
    assert config.get_rolling_interval() == DEFAULT_ROLLING_MINUTES


def test_set_rolling_interval_accepts_upper_bound(config):
    assert config.set_rolling_interval(9_999_999) is True
    assert config.get_rolling_interval() == 9_999_999


def test_setters_report_write_failure(store, config):
    store.fail_writes = True
    assert config.set_stage_intervals([1, 2]) is False
    assert config.set_rolling_interval(60) is False
    assert config.reset_to_defaults() is False

    store.fail_writes = False
    assert config.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)


def test_update_schedule_writes_both_fields_once(store, config):
    writes = store.write_count
    assert config.update_schedule(stage_minutes=[60, 15], rolling_minutes=2880) is True
    assert store.write_count == writes + 1
    assert config.get_stage_intervals() == [15, 60]
    assert config.get_rolling_interval() == 2880

    assert config.update_schedule(rolling_minutes=720) is True
    assert config.get_stage_intervals() == [15, 60]
    assert config.get_rolling_interval() == 720


def test_update_schedule_is_all_or_nothing(store, config):
    assert config.update_schedule(stage_minutes=[5], rolling_minutes=0) is False
    assert config.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)

    store.fail_writes = True
    assert config.update_schedule(stage_minutes=[5], rolling_minutes=60) is False
    store.fail_writes = False
    assert config.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)
    assert config.get_rolling_interval() == DEFAULT_ROLLING_MINUTES


def test_unreadable_store_reads_defaults_and_skips_writes(store, config):
    assert config.set_stage_intervals([5, 50])
    writes = store.write_count

    store.fail_reads = True
    assert config.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)
    assert config.get_rolling_interval() == DEFAULT_ROLLING_MINUTES
    assert config.set_rolling_interval(120) is False
    assert store.write_count == writes

    store.fail_reads = False
    assert config.get_stage_intervals() == [5, 50]


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"[1, 2, 3]",
        b"\xff\xfe",
        b'{"stageMinutes": [], "rollingMinutes": -1}',
        b'{"stageMinutes": "3d", "rollingMinutes": "30d"}',
    ],
)
def test_corrupt_record_reads_as_defaults(store, config, payload):
    store.set(DEFAULT_CONFIG_KEY, payload)
    assert config.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)
    assert config.get_rolling_interval() == DEFAULT_ROLLING_MINUTES


def test_partially_valid_record_keeps_usable_fields(store, config):
    store.set(DEFAULT_CONFIG_KEY, b'{"stageMinutes": [60, "x", 30, 30], "rollingMinutes": 0}')
    assert config.get_stage_intervals() == [30, 60]
    assert config.get_rolling_interval() == DEFAULT_ROLLING_MINUTES


def test_persisted_record_shape(store, config):
    assert config.set_stage_intervals([1, 10])
    assert config.set_rolling_interval(600)
    record = json.loads(store.get(DEFAULT_CONFIG_KEY))
    assert record == {"version": 2, "stageMinutes": [1, 10], "rollingMinutes": 600}


def test_custom_key_is_isolated(store):
    a = ScheduleConfig(store, key="profile_a")
    b = ScheduleConfig(store, key="profile_b")
    assert a.set_stage_intervals([7])
    assert a.get_stage_intervals() == [7]
    assert b.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)


def test_reset_to_defaults(config):
    assert config.set_stage_intervals([1])
    assert config.set_rolling_interval(2)
    assert config.reset_to_defaults()
    assert config.get_stage_intervals() == list(DEFAULT_STAGE_MINUTES)
    assert config.get_rolling_interval() == DEFAULT_ROLLING_MINUTES


def test_legacy_day_surface(config):
    assert config.set_stage_days([1, "2", 2])
    assert config.get_stage_intervals() == [1440, 2880]
    assert config.get_stage_days() == [1, 2]

    # 丸めは四捨五入（0.5 日は 1 日）
    assert config.set_stage_intervals([720, 2160])
    assert config.get_stage_days() == [1, 2]

    assert config.set_rolling_days(10)
    assert config.get_rolling_interval() == 14400
    assert config.get_rolling_days() == 10
    assert config.set_rolling_days(0) is False
    assert config.set_rolling_days("abc") is False


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [
        (0, "0m"),
        (-5, "0m"),
        (45, "45m"),
        (60, "1h"),
        (90, "1h"),
        (1441, "1d"),
        (1500, "1d 1h"),
        (4320, "3d"),
        (43200, "30d"),
    ],
)
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected
    assert ScheduleConfig.format_duration(minutes) == expected


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("15m", 15),
        ("3h", 180),
        ("2d", 2880),
        ("7", 10080),
        (" 5 H ", 300),
        ("0m", None),
        ("-3d", None),
        ("abc", None),
        ("", None),
        ("1w", None),
    ],
)
def test_parse_interval_token(token, expected):
    assert parse_interval_token(token) == expected


def test_parse_schedule_string():
    assert parse_schedule_string("1m, 10m, 1d, bogus, 10m") == [1, 10, 1440]
    assert parse_schedule_string("") == []
    assert parse_schedule_string(None) == []
    assert parse_schedule_string(" , ,") == []


def test_describe_schedule():
    assert describe_schedule([4320, 10080], 43200) == "3d → 7d → every 30d"
    assert describe_schedule([60], 0) == "1h"
    assert describe_schedule([], 43200) == "—"


def test_describe_uses_current_values(config):
    assert config.describe() == "3d → 7d → 14d → 21d → 30d → every 30d"
    assert config.set_stage_intervals([10, 90])
    assert config.describe() == "10m → 1h → every 30d"
