"""Exception hierarchy for the storage seam.

ストア層は失敗時に例外を送出し、ScheduleConfig / ReviewScheduler がその境界で
捕捉して bool や既定値に変換する。公開 API の外へ例外は漏らさない。
"""

from __future__ import annotations


class VocabSrsError(Exception):
    """Base class for errors raised inside the package."""


class StorageError(VocabSrsError):
    """Raised when the key-value store cannot be read or written."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class RecordDecodeError(VocabSrsError):
    """Raised when a persisted record cannot be parsed into its schema."""
