"""Structured logging setup.

構造化ログの初期化を行う。stdlib logging を土台に structlog で JSON を出力し、
スケジューラの保存失敗などを `srs_persist_failed` のようなイベント名で記録する。
HTTP ミドルウェアが contextvars に束縛した request_id は全イベントへ自動付与される。
"""

import logging
import structlog
from structlog import contextvars as structlog_contextvars
from .config import settings


def configure_logging(level: str | None = None) -> None:
    """Configure structlog for application-wide logging.

    標準 logging をメッセージのみのフォーマットで初期化し、structlog で
    ISO タイムスタンプ付きの JSON を出力する。
    """
    level_name = (level or settings.log_level or "INFO").upper()
    # force=True で既存ハンドラ（uvicorn 等）を上書きして一貫化
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
