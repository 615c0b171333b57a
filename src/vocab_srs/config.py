from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = ".data/srs.sqlite3"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    環境変数（および `.env`）から読み込まれる設定クラス。
    - srs_store_backend: スケジューラ状態を保存する KV ストアの種類
    - srs_config_key / srs_items_key: 2 つの永続レコードのキー名
    - log_level: structlog の出力レベル
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for structured logs / ログレベル",
    )

    # --- KV ストアの選択 ---
    srs_store_backend: Literal["memory", "sqlite", "firestore"] = Field(
        default="sqlite",
        description="Key-value store backend / スケジューラ状態の保存先",
    )
    srs_db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="Path to SRS SQLite database / SRS用SQLite DBパス",
    )

    # --- 永続レコードのキー ---
    srs_config_key: str = Field(
        default="srs_config_v2",
        description="Key of the schedule config record / スケジュール設定レコードのキー",
    )
    srs_items_key: str = Field(
        default="srs_items_v1",
        description="Key of the tracked items record / 学習項目レコードのキー",
    )
    srs_known_words_key: str = Field(
        default="knownWords",
        description="Key of the legacy known-words list / 旧形式の既知語リストのキー",
    )

    # --- Firestore ---
    firestore_project_id: str | None = Field(
        default=None,
        description="Firestore project ID / Firestore のプロジェクトID",
    )
    firestore_emulator_host: str | None = Field(
        default=None,
        description="Firestore emulator host (host:port) / エミュレータのホスト",
    )
    srs_firestore_collection: str = Field(
        default="srs_kv",
        description="Firestore collection for SRS records / SRS レコードを保存するコレクション",
    )

    # Pydantic v2 settings config
    # - env_file: .env を読み込む
    # - extra: 未使用キーを無視
    # - case_sensitive: 環境変数キーの大小文字を区別しない
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, raw: object) -> object:
        """Upper-case the level name so `info` and `INFO` behave the same."""

        if isinstance(raw, str):
            return raw.strip().upper() or "INFO"
        return raw

    @field_validator("srs_config_key", "srs_items_key", "srs_known_words_key")
    @classmethod
    def _reject_blank_keys(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("storage keys must not be blank")
        return trimmed


settings = Settings()
