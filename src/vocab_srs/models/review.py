from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .records import HistoryAction, TrackedItem


class ReviewOutcome(str, Enum):
    """Learner rating forwarded by the presentation layer."""

    good = "good"
    again = "again"


class ReviewInitRequest(BaseModel):
    """初回表示（既知としてマーク）時に送るリクエスト。"""

    text: str = Field(min_length=1, max_length=256)


class ReviewGradeRequest(BaseModel):
    """Request model for submitting a review outcome.

    復習結果（good / again）をサーバへ送るためのリクエスト。
    text は表示中の原文をそのまま渡す（キーの正規化はサーバ側で行う）。
    """

    text: str = Field(min_length=1, max_length=256)
    outcome: ReviewOutcome


class HistoryEntryOut(BaseModel):
    ts: datetime
    action: HistoryAction


class TrackedItemOut(BaseModel):
    """Snapshot of a tracked item returned to the client."""

    key: str
    display: str
    stage: int
    added_at: datetime | None = None
    due_at: datetime | None = None
    history: list[HistoryEntryOut] = []

    @classmethod
    def from_item(cls, item: TrackedItem) -> "TrackedItemOut":
        return cls(
            key=item.key,
            display=item.display,
            stage=item.stage,
            added_at=item.added_at,
            due_at=item.due_at,
            history=[HistoryEntryOut(ts=h.ts, action=h.action) for h in item.history],
        )


class ReviewDueResponse(BaseModel):
    """Response model for the current review queue.

    - items: due_at <= 現在時刻 の項目の表示テキスト（順序保証なし）
    - count: items の件数
    """

    items: list[str]
    count: int


class MigrateRequest(BaseModel):
    words: list[str] = Field(default_factory=list)


class MigrateResponse(BaseModel):
    added: int


class OkResponse(BaseModel):
    ok: bool
