from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.constants import ContentUnitTypeEnum
from app.core.database import get_db
from app.schemas.access import AccessDecision, ContentUnit, CourseAccessMap
from app.schemas.response import APIResponse
from app.schemas.user import UserContext
from app.services.access import access_service
from app.utils import deps

router = APIRouter()


@router.get("/courses/{course_id}/access", response_model=APIResponse[AccessDecision])
def evaluate_access(
    *,
    db: Session = Depends(get_db),
    course_id: int,
    unit_type: ContentUnitTypeEnum = Query(...),
    unit_id: Optional[int] = Query(None),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    decision = access_service.evaluate(
        db,
        user_id=context.user.id,
        course_id=course_id,
        unit=ContentUnit(unit_type=unit_type, unit_id=unit_id),
    )
    return APIResponse(message="Access evaluated", data=decision)


@router.get("/courses/{course_id}/access-map", response_model=APIResponse[CourseAccessMap])
def get_course_access_map(
    *,
    db: Session = Depends(get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    access_map = access_service.get_course_access_map(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Course access retrieved", data=access_map)
