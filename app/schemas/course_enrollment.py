from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.core.constants import EnrollmentOutcomeEnum


class CourseEnrollmentCreate(BaseModel):
    user_id: int
    course_id: int
    is_premium: bool = False


class CourseEnrollment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    is_premium: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class EnrollmentResult(BaseModel):
    """Outcome of an enroll request; paid courses come back as `payment_required`."""
    model_config = ConfigDict(use_enum_values=True)

    status: EnrollmentOutcomeEnum
    course_id: int
    price: Decimal
    enrollment: Optional[CourseEnrollment] = None
