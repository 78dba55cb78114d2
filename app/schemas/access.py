from pydantic import BaseModel, ConfigDict
from typing import Dict, Optional

from app.core.constants import AccessDecisionEnum, ContentUnitTypeEnum


class ContentUnit(BaseModel):
    unit_type: ContentUnitTypeEnum
    unit_id: Optional[int] = None


class AccessDecision(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    course_id: int
    unit_type: ContentUnitTypeEnum
    unit_id: Optional[int] = None
    decision: AccessDecisionEnum


class CourseAccessMap(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    course_id: int
    is_enrolled: bool
    is_premium: bool
    lessons: Dict[int, AccessDecisionEnum]
    assignments: Dict[int, AccessDecisionEnum]
