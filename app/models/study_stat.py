from sqlalchemy import Column, Integer, Date, ForeignKey, UniqueConstraint
from app.core.database import Base


class DailyStudyStat(Base):
    __tablename__ = "daily_study_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "study_date", name="uq_daily_study_stats_user_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    study_date = Column(Date, nullable=False) # UTC calendar day
    minutes_studied = Column(Integer, nullable=False, default=0)
    community_score = Column(Integer, nullable=False, default=0)

    @property
    def hours_studied(self) -> float:
        return (self.minutes_studied or 0) / 60
