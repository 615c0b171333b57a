from __future__ import annotations

from pydantic import BaseModel, Field


class ScheduleResponse(BaseModel):
    """Current interval schedule.

    - stage_minutes: 各ステージの待ち時間（分）
    - rolling_minutes: 卒業後の固定間隔（分）
    - stages: stage_minutes を "3d" 形式にしたもの
    - description: "3d → 7d → every 30d" 形式のプレビュー
    """

    stage_minutes: list[int]
    rolling_minutes: int
    stages: list[str]
    description: str


class ScheduleUpdateRequest(BaseModel):
    """Schedule update from the settings surface.

    stage_minutes（数値）と schedule（"1m, 10m, 1d" 形式の文字列）のどちらか
    一方を指定する。両方ある場合は stage_minutes を優先する。
    """

    stage_minutes: list[int] | None = None
    schedule: str | None = Field(default=None, max_length=1024)
    rolling_minutes: int | None = None


class RescheduleResponse(BaseModel):
    changed: int
    first_minutes: int
