from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .records import normalize_key


class ContentRow(BaseModel):
    """A word pair supplied by the content source.

    スケジューラが使うのは front_text のみ（追跡キーの導出元）。
    それ以外は表示層のための付帯情報。
    """

    model_config = ConfigDict(extra="ignore")

    front_text: str
    back_text: str = ""
    sub_text: str | None = None
    extra_texts: list[str] = Field(default_factory=list)

    @property
    def tracking_key(self) -> str:
        return normalize_key(self.front_text)
