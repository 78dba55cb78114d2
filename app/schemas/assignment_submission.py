from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from app.core.constants import SubmissionStatusEnum
from app.schemas.course_progress import CourseProgress


class AssignmentSubmit(BaseModel):
    content: Optional[str] = Field(None, max_length=20000)


class AssignmentGrade(BaseModel):
    grade: float = Field(..., allow_inf_nan=False)
    feedback: Optional[str] = None

    @field_validator("grade")
    def grade_not_negative(cls, v):
        if v < 0:
            raise ValueError("Grade cannot be negative.")
        return v


class AssignmentSubmission(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    user_id: int
    assignment_id: int
    status: SubmissionStatusEnum
    content: Optional[str] = None
    grade: Optional[float] = None
    feedback: Optional[str] = None
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None


class GradeResult(BaseModel):
    submission: AssignmentSubmission
    progress: CourseProgress
