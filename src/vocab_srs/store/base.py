from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Storage seam shared by ScheduleConfig and ReviewScheduler.

    - get: 未保存なら None。バックエンド障害時は StorageError を送出する
      （「空」と「読めない」を区別し、読めない状態での上書きを防ぐため）
    - set / delete: 成功時 True。書き込み失敗は False を返し例外は送出しない
    """

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> bool: ...

    def delete(self, key: str) -> bool: ...


class InMemoryKeyValueStore:
    """Process-local store used by tests and the `memory` backend."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> bool:
        with self._lock:
            self._data[key] = bytes(value)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._data.pop(key, None)
        return True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)
