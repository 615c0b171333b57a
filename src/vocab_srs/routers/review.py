from fastapi import APIRouter, Depends, HTTPException

from ..logging import logger
from ..models.records import normalize_key
from ..models.review import (
    MigrateRequest,
    MigrateResponse,
    OkResponse,
    ReviewDueResponse,
    ReviewGradeRequest,
    ReviewInitRequest,
    TrackedItemOut,
)
from ..deps import get_scheduler
from ..scheduler import ReviewScheduler

router = APIRouter(tags=["review"])


@router.get("/due", response_model=ReviewDueResponse, summary="出題対象（due）の項目を取得")
def review_due(scheduler: ReviewScheduler = Depends(get_scheduler)) -> ReviewDueResponse:
    """Return display text of every item due now (no ordering contract)."""
    items = scheduler.due_keys()
    return ReviewDueResponse(items=items, count=len(items))


@router.post("/init", response_model=OkResponse, summary="初回表示した項目の追跡を開始")
def review_init(
    req: ReviewInitRequest,
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> OkResponse:
    """Start tracking an item after its first exposure.

    既に追跡中の項目は進捗を保ったまま修復のみ行う（冪等）。
    """
    if not normalize_key(req.text):
        raise HTTPException(status_code=422, detail="text must not be blank")
    scheduler.init_for_word(req.text)
    return OkResponse(ok=True)


@router.post("/grade", response_model=TrackedItemOut, summary="採点して次回出題時刻を更新")
def review_grade(
    req: ReviewGradeRequest,
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> TrackedItemOut:
    """Apply good / again and return the updated item.

    未追跡の項目は暗黙に初期化してから採点する。
    """
    if not normalize_key(req.text):
        raise HTTPException(status_code=422, detail="text must not be blank")
    updated = scheduler.mark_reviewed(req.text, req.outcome)
    if updated is None:
        # 空キー・不正な outcome は上で弾いているので、ここに来るのはストアの読み書き失敗のみ
        logger.warning("review_grade_unavailable", text=req.text)
        raise HTTPException(status_code=503, detail="review store unavailable")
    return TrackedItemOut.from_item(updated)


@router.get("/items/{text}", response_model=TrackedItemOut, summary="追跡中の項目を参照")
def review_item(text: str, scheduler: ReviewScheduler = Depends(get_scheduler)) -> TrackedItemOut:
    item = scheduler.peek(text)
    if item is None:
        raise HTTPException(status_code=404, detail="item not found")
    return TrackedItemOut.from_item(item)


@router.delete("/items", response_model=OkResponse, summary="追跡中の全項目を削除")
def review_clear(scheduler: ReviewScheduler = Depends(get_scheduler)) -> OkResponse:
    """Discard every tracked item. Irreversible."""
    if not scheduler.clear_all():
        raise HTTPException(status_code=503, detail="failed to persist review items")
    return OkResponse(ok=True)


@router.post("/migrate", response_model=MigrateResponse, summary="旧形式の既知語リストを取り込む")
def review_migrate(
    req: MigrateRequest,
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> MigrateResponse:
    """Track legacy "known" words at stage 0; already tracked words are left alone."""
    result = scheduler.migrate_from_legacy_set(req.words)
    return MigrateResponse(added=result.added)
