from datetime import date, datetime, time, timedelta, timezone
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional

from app.core.constants import SubmissionStatusEnum
from app.crud.base import CRUDBase
from app.models.assignment import Assignment
from app.models.assignment_submission import AssignmentSubmission


class CRUDAssignmentSubmission(CRUDBase[AssignmentSubmission, None, None]):

    def get_by_user_and_assignment(self, db: Session, user_id: int, assignment_id: int) -> Optional[AssignmentSubmission]:
        return (
            db.query(AssignmentSubmission)
            .filter(AssignmentSubmission.user_id == user_id)
            .filter(AssignmentSubmission.assignment_id == assignment_id)
            .first()
        )

    def count_completed_by_course(self, db: Session, user_id: int, course_ids: Iterable[int]) -> Dict[int, int]:
        course_ids = list(set(course_ids))
        if not course_ids:
            return {}
        rows = (
            db.query(Assignment.course_id, func.count(AssignmentSubmission.id))
            .join(Assignment, Assignment.id == AssignmentSubmission.assignment_id)
            .filter(AssignmentSubmission.user_id == user_id)
            .filter(AssignmentSubmission.status == SubmissionStatusEnum.COMPLETED)
            .filter(Assignment.course_id.in_(course_ids))
            .group_by(Assignment.course_id)
            .all()
        )
        return {course_id: count for course_id, count in rows}

    def get_graded_on(self, db: Session, user_id: int, day: date) -> List[AssignmentSubmission]:
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        return (
            db.query(AssignmentSubmission)
            .filter(AssignmentSubmission.user_id == user_id)
            .filter(AssignmentSubmission.status == SubmissionStatusEnum.COMPLETED)
            .filter(AssignmentSubmission.graded_at >= start)
            .filter(AssignmentSubmission.graded_at < start + timedelta(days=1))
            .order_by(AssignmentSubmission.graded_at)
            .all()
        )

    def delete_for_course(self, db: Session, user_id: int, course_id: int) -> int:
        assignment_ids = db.query(Assignment.id).filter(Assignment.course_id == course_id)
        return (
            db.query(AssignmentSubmission)
            .filter(AssignmentSubmission.user_id == user_id)
            .filter(AssignmentSubmission.assignment_id.in_(assignment_ids.scalar_subquery()))
            .delete(synchronize_session=False)
        )


assignment_submission = CRUDAssignmentSubmission(AssignmentSubmission)
