from pydantic import BaseModel, ConfigDict
from typing import List
from datetime import date


class DailyStudyStat(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    study_date: date
    minutes_studied: int
    hours_studied: float
    community_score: int


class StudyStatsSummary(BaseModel):
    days: List[DailyStudyStat]
    total_hours: float
    total_community_score: int
