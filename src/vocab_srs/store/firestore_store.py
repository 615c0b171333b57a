from __future__ import annotations

from datetime import UTC, datetime

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from ..errors import StorageError
from ..logging import logger

_FIRESTORE_ERRORS = (google_exceptions.GoogleAPIError,)


class FirestoreKeyValueStore:
    """Firestore-backed key-value store.

    1 レコード = 1 ドキュメント（ID はレコードのキー）。値は `value` フィールドに
    バイト列として保存する。ドキュメントの上限（1 MiB）を超える規模の
    学習項目は想定していない。
    """

    def __init__(self, client: firestore.Client, collection: str = "srs_kv") -> None:
        self._client = client
        self._records = client.collection(collection)

    def get(self, key: str) -> bytes | None:
        try:
            snapshot = self._records.document(key).get()
        except _FIRESTORE_ERRORS as exc:
            raise StorageError(f"failed to read {key!r}: {exc}", key=key) from exc
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        value = data.get("value")
        if value is None:
            return None
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)

    def set(self, key: str, value: bytes) -> bool:
        try:
            self._records.document(key).set(
                {
                    "value": bytes(value),
                    "updated_at": datetime.now(UTC).isoformat(),
                }
            )
        except _FIRESTORE_ERRORS as exc:
            logger.warning("srs_firestore_write_failed", key=key, error=repr(exc))
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self._records.document(key).delete()
        except _FIRESTORE_ERRORS as exc:
            logger.warning("srs_firestore_delete_failed", key=key, error=repr(exc))
            return False
        return True
