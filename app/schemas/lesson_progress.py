from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from app.schemas.course_progress import CourseProgress


class LessonProgress(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    lesson_id: int
    is_completed: bool
    completed_at: Optional[datetime] = None


class LessonCompletionResult(BaseModel):
    lesson_progress: LessonProgress
    progress: CourseProgress
