from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.cache import cache
from app.core.database import get_db
from app.core.constants import EnrollmentOutcomeEnum
from app.schemas.course_enrollment import CourseEnrollment, EnrollmentResult
from app.schemas.response import APIResponse
from app.schemas.user import UserContext
from app.services.enrollment import enrollment_service
from app.utils import deps

router = APIRouter()


@router.post("/courses/{course_id}", response_model=APIResponse[EnrollmentResult])
async def enroll(
    *,
    db: Session = Depends(get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    result = enrollment_service.enroll(db, user_id=context.user.id, course_id=course_id)
    await cache.invalidate_user_cache(context.user.id)
    if result.status == EnrollmentOutcomeEnum.PAYMENT_REQUIRED.value:
        return APIResponse(message="Payment is required to enroll in this course", data=result)
    return APIResponse(message="Enrolled successfully", data=result)


@router.delete("/courses/{course_id}", response_model=APIResponse[None])
async def withdraw(
    *,
    db: Session = Depends(get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollment_service.withdraw(db, user_id=context.user.id, course_id=course_id)
    await cache.invalidate_user_cache(context.user.id)
    return APIResponse(message="Withdrawn from course")


@router.get("/me", response_model=APIResponse[List[CourseEnrollment]])
def list_my_enrollments(
    *,
    db: Session = Depends(get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollments = enrollment_service.list_enrollments(db, user_id=context.user.id)
    return APIResponse(
        message="Enrollments retrieved successfully",
        data=[CourseEnrollment.model_validate(e) for e in enrollments]
    )
