from sqlalchemy.orm import Session
from typing import Optional

from app.crud.base import CRUDBase
from app.models.course_payment import CoursePayment
from app.schemas.course_payment import CoursePaymentCreate


class CRUDCoursePayment(CRUDBase[CoursePayment, CoursePaymentCreate, None]):

    def get_by_reference(self, db: Session, external_reference: str) -> Optional[CoursePayment]:
        return db.query(CoursePayment).filter(CoursePayment.external_reference == external_reference).first()


course_payment = CRUDCoursePayment(CoursePayment)
