from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class CourseProgress(BaseModel):
    course_id: int
    percent: int = Field(..., ge=0, le=100)
    completed: int
    total: int
    updated_at: Optional[datetime] = None


class CourseProgressSnapshotCreate(BaseModel):
    user_id: int
    course_id: int
    percent: int
    completed_count: int
    total_count: int


class CourseProgressBatchRequest(BaseModel):
    course_ids: List[int] = Field(..., max_length=500)
