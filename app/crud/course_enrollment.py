from datetime import datetime, timezone
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional

from app.crud.base import CRUDBase, dialect_insert
from app.models.course_enrollment import CourseEnrollment
from app.schemas.course_enrollment import CourseEnrollmentCreate

class CRUDCourseEnrollment(CRUDBase[CourseEnrollment, CourseEnrollmentCreate, None]):

    def get_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> Optional[CourseEnrollment]:
        return (
            db.query(CourseEnrollment)
            .filter(CourseEnrollment.user_id == user_id)
            .filter(CourseEnrollment.course_id == course_id)
            .first()
        )

    def get_by_user(self, db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[CourseEnrollment]:
        return (
            db.query(CourseEnrollment)
            .options(selectinload(CourseEnrollment.course))
            .filter(CourseEnrollment.user_id == user_id)
            .order_by(CourseEnrollment.created_at)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_course_ids_for_user(self, db: Session, user_id: int) -> List[int]:
        rows = db.query(CourseEnrollment.course_id).filter(CourseEnrollment.user_id == user_id).all()
        return [row[0] for row in rows]

    def upsert_premium(self, db: Session, user_id: int, course_id: int) -> CourseEnrollment:
        """Create the enrollment as premium, or upgrade an existing one in place."""
        stmt = dialect_insert(db, CourseEnrollment).values(
            user_id=user_id,
            course_id=course_id,
            is_premium=True,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "course_id"],
            set_={"is_premium": True, "updated_at": datetime.now(timezone.utc)},
        )
        db.execute(stmt)
        db.flush()
        enrollment = self.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
        db.refresh(enrollment)
        return enrollment

    def delete_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> int:
        return (
            db.query(CourseEnrollment)
            .filter(CourseEnrollment.user_id == user_id)
            .filter(CourseEnrollment.course_id == course_id)
            .delete(synchronize_session=False)
        )

course_enrollment = CRUDCourseEnrollment(CourseEnrollment)
