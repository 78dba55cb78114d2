from decimal import Decimal
from typing import List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import EnrollmentOutcomeEnum
from app.crud.assignment_submission import assignment_submission as crud_submission
from app.crud.course import course as crud_course
from app.crud.course_enrollment import course_enrollment as crud_enrollment
from app.crud.course_payment import course_payment as crud_payment
from app.crud.course_progress import course_progress as crud_course_progress
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.user import user as crud_user
from app.models.course_enrollment import CourseEnrollment
from app.schemas.course_enrollment import CourseEnrollment as CourseEnrollmentSchema, CourseEnrollmentCreate, EnrollmentResult
from app.schemas.course_payment import CoursePaymentCreate
from app.services.course_progress import course_progress_service
from app.services.notification import notification_service

logger = logging.getLogger(__name__)


def price_in_minor_units(price) -> int:
    return int((Decimal(price or 0) * 100).to_integral_value())


class EnrollmentService:

    def _get_course_or_raise(self, db: Session, course_id: int):
        course = crud_course.get(db, id=course_id)
        if not course:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found.")
        return course

    def enroll(self, db: Session, *, user_id: int, course_id: int) -> EnrollmentResult:
        """Enroll in a free course right away; paid courses wait for payment confirmation."""
        course = self._get_course_or_raise(db, course_id)
        price = Decimal(course.price or 0)

        if crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You are already enrolled in this course.")

        if not course.is_free:
            logger.info(f"User {user_id} requested paid course {course_id}, awaiting payment confirmation")
            return EnrollmentResult(status=EnrollmentOutcomeEnum.PAYMENT_REQUIRED, course_id=course_id, price=price)

        try:
            enrollment = crud_enrollment.create(
                db,
                obj_in=CourseEnrollmentCreate(user_id=user_id, course_id=course_id, is_premium=True),
                commit=False,
            )
            course_progress_service.refresh_course_progress(db, user_id, course_id)
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You are already enrolled in this course.")

        logger.info(f"User {user_id} enrolled in free course {course_id}")
        return EnrollmentResult(
            status=EnrollmentOutcomeEnum.ENROLLED,
            course_id=course_id,
            price=price,
            enrollment=CourseEnrollmentSchema.model_validate(enrollment),
        )

    def confirm_premium_enrollment(
        self,
        db: Session,
        *,
        user_id: int,
        course_id: int,
        amount: Optional[int] = None,
        currency: str = "usd",
        external_reference: Optional[str] = None,
    ) -> CourseEnrollment:
        """Grant premium access once the payment collaborator confirms payment.

        `amount` is in minor units. Re-delivery of the same
        `external_reference` returns the existing enrollment untouched.
        """
        course = self._get_course_or_raise(db, course_id)
        if not crud_user.get(db, id=user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

        if external_reference and crud_payment.get_by_reference(db, external_reference=external_reference):
            logger.info(f"Payment {external_reference} already applied, skipping")
            enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
            if enrollment:
                return enrollment

        expected = price_in_minor_units(course.price)
        if amount is not None and amount < expected:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Payment of {amount} does not cover the course price of {expected}."
            )

        if external_reference and not crud_payment.get_by_reference(db, external_reference=external_reference):
            crud_payment.create(
                db,
                obj_in=CoursePaymentCreate(
                    user_id=user_id,
                    course_id=course_id,
                    external_reference=external_reference,
                    amount=amount if amount is not None else expected,
                    currency=currency,
                ),
                commit=False,
            )

        enrollment = crud_enrollment.upsert_premium(db, user_id=user_id, course_id=course_id)
        course_progress_service.refresh_course_progress(db, user_id, course_id)
        db.commit()
        db.refresh(enrollment)
        logger.info(f"Premium enrollment confirmed for user {user_id} in course {course_id}")

        notification_service.notify(
            db,
            user_id=user_id,
            message=f"Your payment for '{course.title}' was confirmed. All course content is now unlocked.",
            link=f"/courses/{course_id}",
            notification_type="enrollment",
        )
        return enrollment

    def withdraw(self, db: Session, *, user_id: int, course_id: int) -> None:
        """Delete the enrollment and its progress snapshot.

        Ledger rows stay unless PURGE_PROGRESS_ON_WITHDRAW is set, so a
        re-enrolled learner sees what they had actually completed.
        """
        self._get_course_or_raise(db, course_id)
        deleted = crud_enrollment.delete_by_user_and_course(db, user_id=user_id, course_id=course_id)
        if not deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not enrolled in this course.")

        crud_course_progress.delete_by_user_and_course(db, user_id=user_id, course_id=course_id)
        if settings.PURGE_PROGRESS_ON_WITHDRAW:
            lessons = crud_lesson_progress.delete_for_course(db, user_id=user_id, course_id=course_id)
            submissions = crud_submission.delete_for_course(db, user_id=user_id, course_id=course_id)
            logger.info(f"Purged {lessons} lesson completions and {submissions} submissions for user {user_id} course {course_id}")
        db.commit()
        logger.info(f"User {user_id} withdrew from course {course_id}")

    def list_enrollments(self, db: Session, *, user_id: int) -> List[CourseEnrollment]:
        return crud_enrollment.get_by_user(db, user_id=user_id)


enrollment_service = EnrollmentService()
