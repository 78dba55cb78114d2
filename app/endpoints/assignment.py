from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.cache import cache
from app.core.database import get_db
from app.schemas.assignment_submission import AssignmentGrade, AssignmentSubmission, AssignmentSubmit, GradeResult
from app.schemas.response import APIResponse
from app.schemas.user import UserContext
from app.services.completion import completion_service
from app.utils import deps

router = APIRouter()


@router.post("/{assignment_id}/submit", response_model=APIResponse[AssignmentSubmission])
def submit_assignment(
    *,
    db: Session = Depends(get_db),
    assignment_id: int,
    body: AssignmentSubmit,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    submission = completion_service.submit_assignment(
        db, user_id=context.user.id, assignment_id=assignment_id, content=body.content
    )
    return APIResponse(message="Assignment submitted successfully", data=submission)


@router.post("/{assignment_id}/submissions/{user_id}/grade", response_model=APIResponse[GradeResult])
async def grade_assignment(
    *,
    db: Session = Depends(get_db),
    assignment_id: int,
    user_id: int,
    body: AssignmentGrade,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    result = completion_service.grade_assignment(
        db,
        user_id=user_id,
        assignment_id=assignment_id,
        grade=body.grade,
        feedback=body.feedback,
        current_user_context=context,
    )
    await cache.invalidate_user_cache(user_id)
    return APIResponse(message="Assignment graded successfully", data=result)
