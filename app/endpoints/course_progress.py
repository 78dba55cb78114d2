from typing import Dict, List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.response import APIResponse
from app.schemas.course_progress import CourseProgress, CourseProgressBatchRequest
from app.schemas.lesson_progress import LessonCompletionResult
from app.schemas.user import UserContext
from app.services.completion import completion_service
from app.services.course_progress import course_progress_service
from app.utils import deps
from app.core.decorators import cache_endpoint
from app.core.cache import cache

router = APIRouter()


@router.post("/lessons/{lesson_id}/complete", response_model=APIResponse[LessonCompletionResult])
async def complete_lesson(
    *,
    db: Session = Depends(get_db),
    lesson_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    result = completion_service.mark_lesson_complete(db, user_id=context.user.id, lesson_id=lesson_id)
    await cache.invalidate_user_cache(context.user.id)
    return APIResponse(message="Lesson completed successfully", data=result)


@router.get("/courses/{course_id}/progress", response_model=APIResponse[CourseProgress])
@cache_endpoint(ttl=300)
async def get_course_progress(
    *,
    db: Session = Depends(get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    progress = course_progress_service.get_course_progress(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Course progress retrieved successfully", data=progress)


@router.post("/progress/batch", response_model=APIResponse[Dict[int, CourseProgress]])
def get_all_courses_progress(
    *,
    db: Session = Depends(get_db),
    body: CourseProgressBatchRequest,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    progress = course_progress_service.get_all_courses_progress(db, user_id=context.user.id, course_ids=body.course_ids)
    return APIResponse(message="Course progress retrieved successfully", data=progress)


@router.post("/progress/reconcile", response_model=APIResponse[Dict[int, CourseProgress]])
async def reconcile_progress(
    *,
    db: Session = Depends(get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    progress = course_progress_service.reconcile_learner_progress(db, user_id=context.user.id)
    await cache.invalidate_user_cache(context.user.id)
    return APIResponse(message="Course progress reconciled", data=progress)


@router.get("/courses/{course_id}/completed-lessons", response_model=APIResponse[List[int]])
def get_completed_lessons(
    *,
    db: Session = Depends(get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    completed_lesson_ids = completion_service.get_completed_lessons(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Completed lessons retrieved successfully", data=completed_lesson_ids)
