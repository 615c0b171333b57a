from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_schedule_config, get_scheduler
from ..logging import logger
from ..models.records import clean_stage_minutes, is_valid_interval
from ..models.schedule import RescheduleResponse, ScheduleResponse, ScheduleUpdateRequest
from ..schedule_config import ScheduleConfig, describe_schedule, format_duration, parse_schedule_string
from ..scheduler import ReviewScheduler

router = APIRouter(tags=["schedule"])


def _schedule_response(config: ScheduleConfig) -> ScheduleResponse:
    record = config.snapshot()
    return ScheduleResponse(
        stage_minutes=list(record.stage_minutes),
        rolling_minutes=record.rolling_minutes,
        stages=[format_duration(m) for m in record.stage_minutes],
        description=describe_schedule(record.stage_minutes, record.rolling_minutes),
    )


@router.get("", response_model=ScheduleResponse, summary="現在の出題間隔を取得")
def get_schedule(config: ScheduleConfig = Depends(get_schedule_config)) -> ScheduleResponse:
    return _schedule_response(config)


@router.put("", response_model=ScheduleResponse, summary="出題間隔を更新")
def update_schedule(
    req: ScheduleUpdateRequest,
    config: ScheduleConfig = Depends(get_schedule_config),
) -> ScheduleResponse:
    """Update stage and/or rolling intervals.

    - stage_minutes（数値）を優先し、無ければ schedule（"1m, 10m, 1d"）を解釈する
    - 入力がすべて不正な場合・ローリング間隔が範囲外の場合は 400（何も保存しない）
    - 段階とローリング間隔は 1 回の書き込みで保存し、失敗した場合は 503（どちらも変更しない）
    """
    stages: list[int] | None = None
    if req.stage_minutes is not None:
        stages = clean_stage_minutes(req.stage_minutes)
        if not stages:
            raise HTTPException(
                status_code=400,
                detail="stage_minutes must contain at least one valid interval",
            )
    elif req.schedule is not None:
        stages = parse_schedule_string(req.schedule)
        if not stages:
            raise HTTPException(
                status_code=400,
                detail="schedule must contain at least one valid interval (e.g. 15m, 3h, 2d)",
            )
    if req.rolling_minutes is not None and not is_valid_interval(req.rolling_minutes):
        raise HTTPException(status_code=400, detail="rolling_minutes is out of range")

    if not config.update_schedule(stage_minutes=stages, rolling_minutes=req.rolling_minutes):
        raise HTTPException(status_code=503, detail="failed to persist schedule")
    response = _schedule_response(config)
    logger.info("schedule_updated", description=response.description)
    return response


@router.post("/reset", response_model=ScheduleResponse, summary="出題間隔を既定値に戻す")
def reset_schedule(config: ScheduleConfig = Depends(get_schedule_config)) -> ScheduleResponse:
    if not config.reset_to_defaults():
        raise HTTPException(status_code=503, detail="failed to persist schedule")
    return _schedule_response(config)


@router.post("/reschedule-stage0", response_model=RescheduleResponse, summary="stage 0 の項目に新しい初回間隔を適用")
def reschedule_stage0(scheduler: ReviewScheduler = Depends(get_scheduler)) -> RescheduleResponse:
    """Re-queue every stage-0 item with the current first interval.

    失敗時は changed=0 / first_minutes=0 を返す（保存済みの状態は変わらない）。
    """
    result = scheduler.reschedule_stage0()
    return RescheduleResponse(changed=result.changed, first_minutes=result.first_minutes)
