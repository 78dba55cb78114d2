from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.cache import cache
from app.core.database import get_db
from app.core.decorators import cache_endpoint
from app.schemas.response import APIResponse
from app.schemas.study_stat import DailyStudyStat, StudyStatsSummary
from app.schemas.user import UserContext
from app.services.engagement import engagement_service
from app.utils import deps

router = APIRouter()


@router.get("/study-stats", response_model=APIResponse[StudyStatsSummary])
@cache_endpoint(ttl=120)
async def get_study_stats(
    *,
    db: Session = Depends(get_db),
    days: int = Query(7, ge=1, le=366),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    stats = engagement_service.get_study_stats(db, user_id=context.user.id, days=days)
    return APIResponse(message="Study statistics retrieved successfully", data=stats)


@router.post("/replay", response_model=APIResponse[DailyStudyStat])
async def replay_study_day(
    *,
    db: Session = Depends(get_db),
    study_date: date = Query(...),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    stat = engagement_service.replay_day(db, user_id=context.user.id, study_date=study_date)
    await cache.invalidate_user_cache(context.user.id)
    return APIResponse(message="Study day rebuilt from completion history", data=stat)
