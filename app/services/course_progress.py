from typing import Dict, Iterable
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.crud.assignment_submission import assignment_submission as crud_submission
from app.crud.course import course as crud_course
from app.crud.course_enrollment import course_enrollment as crud_enrollment
from app.crud.course_progress import course_progress as crud_course_progress
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.schemas.course_progress import CourseProgress, CourseProgressSnapshotCreate

logger = logging.getLogger(__name__)


def calculate_percent(completed: int, total: int) -> int:
    """Whole-number completion percent, rounded half up and clamped to [0, 100]."""
    if total <= 0:
        return 0
    # round(completed / total * 100) with halves going up, in integer arithmetic
    percent = (200 * completed + total) // (2 * total)
    return max(0, min(100, percent))


class CourseProgressService:

    def _compute_many(self, db: Session, user_id: int, course_ids: Iterable[int]) -> Dict[int, CourseProgress]:
        course_ids = list(set(course_ids))
        totals = crud_course.count_items_by_course(db, course_ids=course_ids)
        completed_lessons = crud_lesson_progress.count_completed_by_course(db, user_id=user_id, course_ids=course_ids)
        completed_assignments = crud_submission.count_completed_by_course(db, user_id=user_id, course_ids=course_ids)

        results = {}
        for course_id in course_ids:
            total = totals.get(course_id, 0)
            completed = completed_lessons.get(course_id, 0) + completed_assignments.get(course_id, 0)
            results[course_id] = CourseProgress(
                course_id=course_id,
                percent=calculate_percent(completed, total),
                completed=completed,
                total=total,
            )
        return results

    def _persist(self, db: Session, user_id: int, progress: CourseProgress) -> None:
        crud_course_progress.upsert(
            db,
            obj_in=CourseProgressSnapshotCreate(
                user_id=user_id,
                course_id=progress.course_id,
                percent=progress.percent,
                completed_count=progress.completed,
                total_count=progress.total,
            ),
        )

    @staticmethod
    def _from_snapshot(snapshot) -> CourseProgress:
        return CourseProgress(
            course_id=snapshot.course_id,
            percent=snapshot.percent,
            completed=snapshot.completed_count,
            total=snapshot.total_count,
            updated_at=snapshot.updated_at,
        )

    def compute_course_progress(self, db: Session, user_id: int, course_id: int) -> CourseProgress:
        """Count the course's items and the learner's completions straight from the ledger."""
        return self._compute_many(db, user_id, [course_id])[course_id]

    def refresh_course_progress(self, db: Session, user_id: int, course_id: int) -> CourseProgress:
        """Recompute from the ledger and overwrite the snapshot. Caller commits."""
        progress = self.compute_course_progress(db, user_id, course_id)
        self._persist(db, user_id, progress)
        logger.debug(f"Snapshot for user {user_id} course {course_id}: {progress.percent}% ({progress.completed}/{progress.total})")
        return progress

    def get_course_progress(self, db: Session, user_id: int, course_id: int) -> CourseProgress:
        if not crud_course.get(db, id=course_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found.")
        if not crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not enrolled in this course.")

        snapshot = crud_course_progress.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
        if snapshot:
            return self._from_snapshot(snapshot)

        logger.info(f"No snapshot for user {user_id} course {course_id}, rebuilding from ledger")
        progress = self.refresh_course_progress(db, user_id, course_id)
        db.commit()
        return progress

    def get_all_courses_progress(self, db: Session, user_id: int, course_ids: Iterable[int]) -> Dict[int, CourseProgress]:
        """Progress for many courses at once.

        Only courses the learner is enrolled in are returned. Missing
        snapshots are rebuilt together in one batch of grouped queries.
        """
        enrolled = set(crud_enrollment.get_course_ids_for_user(db, user_id=user_id))
        wanted = [course_id for course_id in set(course_ids) if course_id in enrolled]

        snapshots = crud_course_progress.get_by_user_and_courses(db, user_id=user_id, course_ids=wanted)
        results = {course_id: self._from_snapshot(snapshot) for course_id, snapshot in snapshots.items()}

        missing = [course_id for course_id in wanted if course_id not in snapshots]
        if missing:
            logger.info(f"Rebuilding {len(missing)} missing snapshots for user {user_id}")
            computed = self._compute_many(db, user_id, missing)
            for progress in computed.values():
                self._persist(db, user_id, progress)
            db.commit()
            results.update(computed)

        return results

    def reconcile_learner_progress(self, db: Session, user_id: int) -> Dict[int, CourseProgress]:
        """Repair pass: rebuild every snapshot of the learner's enrolled courses from the ledger."""
        course_ids = crud_enrollment.get_course_ids_for_user(db, user_id=user_id)
        computed = self._compute_many(db, user_id, course_ids)
        for progress in computed.values():
            self._persist(db, user_id, progress)
        db.commit()
        logger.info(f"Reconciled {len(computed)} progress snapshots for user {user_id}")
        return computed


course_progress_service = CourseProgressService()
