from __future__ import annotations

import os

from ..config import Settings, settings
from .base import InMemoryKeyValueStore, KeyValueStore
from .sqlite_store import SQLiteKeyValueStore


def _normalize_emulator_host(raw_host: str | None) -> str | None:
    """FIRESTORE_EMULATOR_HOST で受け取ったホスト文字列を正規化する。

    スキームなしの `localhost:8080` でもクライアントオプションに渡せるよう、
    http:// を自動付与する。空文字や None は未設定として扱う。
    """

    host = (raw_host or "").strip()
    if not host:
        return None
    if host.startswith(("http://", "https://")):
        return host
    return f"http://{host}"


def _build_firestore_store(config: Settings) -> KeyValueStore:
    """Firestore クライアントを構築し、KV ストアとして包む。

    google-cloud-firestore は Firestore バックエンドを選んだ場合のみ import する。
    """

    from google.cloud import firestore

    from .firestore_store import FirestoreKeyValueStore

    emulator_host = _normalize_emulator_host(
        config.firestore_emulator_host or os.environ.get("FIRESTORE_EMULATOR_HOST")
    )
    if emulator_host:
        # google-cloud-firestore は FIRESTORE_EMULATOR_HOST を検知して匿名認証へ切り替える。
        os.environ.setdefault(
            "FIRESTORE_EMULATOR_HOST",
            emulator_host.replace("http://", "").replace("https://", ""),
        )
        client = firestore.Client(
            project=config.firestore_project_id,
            client_options={"api_endpoint": emulator_host},
        )
    else:
        client = firestore.Client(project=config.firestore_project_id)
    return FirestoreKeyValueStore(client, collection=config.srs_firestore_collection)


def create_store(config: Settings | None = None) -> KeyValueStore:
    """Build the key-value store selected by `SRS_STORE_BACKEND`."""

    config = config or settings
    backend = config.srs_store_backend
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "firestore":
        return _build_firestore_store(config)
    return SQLiteKeyValueStore(db_path=config.srs_db_path)


__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "create_store",
]
