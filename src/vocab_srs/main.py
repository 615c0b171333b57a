import time

from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware

from .logging import configure_logging, logger
from .middleware import RequestIDMiddleware
from .routers import health, review, schedule

configure_logging()
app = FastAPI(title="vocab-srs API", version="0.1.0")


@app.middleware("http")
async def access_log(request: Request, call_next):
    start = time.time()
    path = request.url.path
    method = request.method
    client_ip = request.client.host if request.client else "unknown"
    status_code: int | None = None
    is_error = False
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception:
        is_error = True
        raise
    finally:
        latency_ms = (time.time() - start) * 1000
        logger.info(
            "request_complete",
            path=path,
            method=method,
            status_code=status_code,
            latency_ms=latency_ms,
            is_error=is_error,
            request_id=getattr(request.state, "request_id", None),
            client_ip=client_ip,
        )


# リクエストID付与（全リクエスト）。access_log より外側で動かし、ログに request_id を載せる
app.add_middleware(RequestIDMiddleware)

# CORS（フロントエンドの開発サーバから直接呼べるようにする）
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)  # ヘルスチェック
app.include_router(review.router, prefix="/api/review")  # 復習キュー・採点
app.include_router(schedule.router, prefix="/api/schedule")  # 出題間隔の設定
