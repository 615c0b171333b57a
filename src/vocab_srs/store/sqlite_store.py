from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterator

from ..errors import StorageError
from ..logging import logger


class SQLiteKeyValueStore:
    """SQLite-backed key-value store (one row per record).

    - レコード全体を BLOB として保存し、読み書きは 1 行単位
    - WAL モードで開き、接続は呼び出しごとに作成・破棄する
    - `:memory:` を指定した場合は単一接続を使い回す（テスト用途）
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._shared: sqlite3.Connection | None = None
        self._shared_lock = threading.Lock()
        if db_path == ":memory:":
            self._shared = sqlite3.connect(":memory:", check_same_thread=False)
        else:
            self._ensure_dirs()
        self._init_db()

    # --- low-level helpers ---
    def _ensure_dirs(self) -> None:
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if self._shared is not None:
            with self._shared_lock:
                yield self._shared
            return
        conn = sqlite3.connect(self.db_path, timeout=10.0, check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        try:
            with self._connect() as conn:
                with conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS kv_records (
                            key TEXT PRIMARY KEY,
                            value BLOB NOT NULL,
                            updated_at TEXT NOT NULL
                        );
                        """
                    )
        except sqlite3.Error as exc:
            # 初期化に失敗しても起動は継続し、以降の読み書きで失敗を報告する
            logger.warning("srs_sqlite_init_failed", db_path=self.db_path, error=repr(exc))

    # --- public API ---
    def get(self, key: str) -> bytes | None:
        try:
            with self._connect() as conn:
                cur = conn.execute("SELECT value FROM kv_records WHERE key = ?;", (key,))
                row = cur.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to read {key!r}: {exc}", key=key) from exc
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def set(self, key: str, value: bytes) -> bool:
        now = datetime.now(UTC).isoformat()
        try:
            with self._connect() as conn:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO kv_records (key, value, updated_at)
                        VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at;
                        """,
                        (key, sqlite3.Binary(value), now),
                    )
        except sqlite3.Error as exc:
            logger.warning("srs_sqlite_write_failed", key=key, error=repr(exc))
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            with self._connect() as conn:
                with conn:
                    conn.execute("DELETE FROM kv_records WHERE key = ?;", (key,))
        except sqlite3.Error as exc:
            logger.warning("srs_sqlite_delete_failed", key=key, error=repr(exc))
            return False
        return True
