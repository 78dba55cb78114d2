from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.constants import ContentUnitTypeEnum, SubmissionStatusEnum
from app.crud.assignment import assignment as crud_assignment
from app.crud.assignment_submission import assignment_submission as crud_submission
from app.crud.course import course as crud_course
from app.crud.lesson import lesson as crud_lesson
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.schemas.access import ContentUnit
from app.schemas.assignment_submission import AssignmentSubmission, GradeResult
from app.schemas.course_progress import CourseProgress
from app.schemas.lesson_progress import LessonCompletionResult, LessonProgress
from app.schemas.user import UserContext
from app.services.access import access_service
from app.services.course_progress import course_progress_service
from app.services.engagement import engagement_service
from app.services.notification import notification_service
from app.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CompletionService:
    """Completion ledger writes and the follow-up work each one triggers.

    The ledger write is committed on its own and any failure there reaches
    the caller. The snapshot refresh and the study-stat update run after it
    in separate transactions; if they fail the ledger write stands and the
    error is logged so a reconcile or replay can heal it.
    """

    def _run_secondary(self, db: Session, action: Callable[[], T], description: str) -> Optional[T]:
        try:
            result = action()
            db.commit()
            return result
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Deferred to reconciliation: {description}")
            return None

    def _refresh_progress(self, db: Session, user_id: int, course_id: int) -> CourseProgress:
        progress = self._run_secondary(
            db,
            lambda: course_progress_service.refresh_course_progress(db, user_id, course_id),
            f"progress snapshot for user {user_id} course {course_id}",
        )
        if progress is None:
            progress = course_progress_service.compute_course_progress(db, user_id, course_id)
        return progress

    def record_lesson_completion(self, db: Session, *, user_id: int, lesson_id: int, completed_at: Optional[datetime] = None):
        """Mark (learner, lesson) completed. Safe to repeat: a second call changes nothing.

        Returns the ledger row, the lesson and whether this call did the flip.
        Does not commit.
        """
        lesson = crud_lesson.get(db, id=lesson_id)
        if not lesson:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found.")

        course_id = lesson.module.course_id
        access_service.require_access(
            db,
            user_id=user_id,
            course_id=course_id,
            unit=ContentUnit(unit_type=ContentUnitTypeEnum.LESSON, unit_id=lesson_id),
        )

        newly_completed = crud_lesson_progress.mark_completed(
            db,
            user_id=user_id,
            lesson_id=lesson_id,
            completed_at=completed_at or datetime.now(timezone.utc),
        )
        record = crud_lesson_progress.get_by_user_and_lesson(db, user_id=user_id, lesson_id=lesson_id)
        return record, lesson, newly_completed

    def mark_lesson_complete(self, db: Session, *, user_id: int, lesson_id: int, completed_at: Optional[datetime] = None) -> LessonCompletionResult:
        record, lesson, newly_completed = self.record_lesson_completion(
            db, user_id=user_id, lesson_id=lesson_id, completed_at=completed_at
        )
        db.commit()
        record_out = LessonProgress.model_validate(record)

        course_id = lesson.module.course_id
        if newly_completed:
            logger.info(f"User {user_id} completed lesson {lesson_id} in course {course_id}")
        progress = self._refresh_progress(db, user_id, course_id)

        if newly_completed:
            self._run_secondary(
                db,
                lambda: engagement_service.on_lesson_completed(
                    db, user_id=user_id, lesson=lesson, completed_at=record_out.completed_at
                ),
                f"study stat for user {user_id} lesson {lesson_id}",
            )

        return LessonCompletionResult(lesson_progress=record_out, progress=progress)

    def submit_assignment(self, db: Session, *, user_id: int, assignment_id: int, content: Optional[str] = None) -> AssignmentSubmission:
        assignment = crud_assignment.get(db, id=assignment_id)
        if not assignment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found.")

        access_service.require_access(
            db,
            user_id=user_id,
            course_id=assignment.course_id,
            unit=ContentUnit(unit_type=ContentUnitTypeEnum.ASSIGNMENT, unit_id=assignment_id),
        )

        submission = crud_submission.get_by_user_and_assignment(db, user_id=user_id, assignment_id=assignment_id)
        if submission and submission.status == SubmissionStatusEnum.COMPLETED:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This assignment has already been graded.")

        values = {
            "status": SubmissionStatusEnum.SUBMITTED,
            "content": content,
            "submitted_at": datetime.now(timezone.utc),
        }
        if submission:
            submission = crud_submission.update(db, db_obj=submission, obj_in=values)
        else:
            submission = crud_submission.create(
                db, obj_in={"user_id": user_id, "assignment_id": assignment_id, **values}
            )
        logger.info(f"User {user_id} submitted assignment {assignment_id}")
        return AssignmentSubmission.model_validate(submission)

    def record_assignment_grade(self, db: Session, *, user_id: int, assignment_id: int, grade: float, feedback: Optional[str] = None, grader_id: Optional[int] = None):
        """Store the grade and move the submission to `completed`. Does not commit.

        Returns the submission, its assignment and whether it was not
        completed before this call.
        """
        assignment = crud_assignment.get(db, id=assignment_id)
        if not assignment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found.")

        submission = crud_submission.get_by_user_and_assignment(db, user_id=user_id, assignment_id=assignment_id)
        if not submission:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No submission found to grade.")

        if not 0 <= grade <= assignment.points:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Grade must be between 0 and {assignment.points}."
            )

        newly_completed = submission.status != SubmissionStatusEnum.COMPLETED
        values = {
            "status": SubmissionStatusEnum.COMPLETED,
            "grade": grade,
            "feedback": feedback,
            "graded_by": grader_id,
        }
        if newly_completed:
            values["graded_at"] = datetime.now(timezone.utc)
        submission = crud_submission.update(db, db_obj=submission, obj_in=values, commit=False)
        return submission, assignment, newly_completed

    def grade_assignment(self, db: Session, *, user_id: int, assignment_id: int, grade: float, feedback: Optional[str], current_user_context: UserContext) -> GradeResult:
        permission_helper.require_grading_permission(current_user_context)

        submission, assignment, newly_completed = self.record_assignment_grade(
            db,
            user_id=user_id,
            assignment_id=assignment_id,
            grade=grade,
            feedback=feedback,
            grader_id=current_user_context.user.id,
        )
        db.commit()
        submission_out = AssignmentSubmission.model_validate(submission)
        logger.info(f"Assignment {assignment_id} for user {user_id} graded {grade} by user {current_user_context.user.id}")

        progress = self._refresh_progress(db, user_id, assignment.course_id)

        if newly_completed:
            self._run_secondary(
                db,
                lambda: engagement_service.on_assignment_completed(
                    db, user_id=user_id, assignment_id=assignment_id, graded_at=submission_out.graded_at
                ),
                f"study stat for user {user_id} assignment {assignment_id}",
            )

        message = f"Your assignment '{assignment.title}' has been graded. Grade: {grade:g}"
        if feedback:
            message += f"\nFeedback: {feedback}"
        notification_service.notify(
            db,
            user_id=user_id,
            message=message,
            link=f"/assignments/{assignment_id}",
            notification_type="grade",
        )

        return GradeResult(submission=submission_out, progress=progress)

    def get_completed_lessons(self, db: Session, *, user_id: int, course_id: int) -> List[int]:
        if not crud_course.get(db, id=course_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found.")
        return crud_lesson_progress.get_completed_lesson_ids(db, user_id=user_id, course_id=course_id)


completion_service = CompletionService()
