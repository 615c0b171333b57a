"""Shared fixtures: in-memory store, fixed clock and a wired scheduler."""

import os
from datetime import UTC, datetime, timedelta

# アプリの既定ストアは SQLite なので、テスト中は import 時点でメモリに固定する。
os.environ.setdefault("SRS_STORE_BACKEND", "memory")

import pytest

from vocab_srs.errors import StorageError
from vocab_srs.schedule_config import ScheduleConfig
from vocab_srs.scheduler import ReviewScheduler
from vocab_srs.store.base import InMemoryKeyValueStore

START = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


class FixedClock:
    """Manually advanced clock injected into ReviewScheduler."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FlakyStore(InMemoryKeyValueStore):
    """In-memory store whose reads raise and writes fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.write_count = 0

    def get(self, key: str) -> bytes | None:
        if self.fail_reads:
            raise StorageError("backend unavailable", key=key)
        return super().get(key)

    def set(self, key: str, value: bytes) -> bool:
        if self.fail_writes:
            return False
        self.write_count += 1
        return super().set(key, value)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def config(store: FlakyStore) -> ScheduleConfig:
    return ScheduleConfig(store)


@pytest.fixture
def scheduler(store: FlakyStore, config: ScheduleConfig, clock: FixedClock) -> ReviewScheduler:
    return ReviewScheduler(store, config, clock=clock)
