from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import LessonTypeEnum

class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    lesson_type = Column(Enum(LessonTypeEnum), nullable=False, default=LessonTypeEnum.TEXT)
    duration = Column(Integer, nullable=False, default=0) # Duration in minutes
    position = Column(Integer, nullable=False, default=0)
    module_id = Column(Integer, ForeignKey("course_modules.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    module = relationship("CourseModule", back_populates="lessons")
    progress_records = relationship("LessonProgress", back_populates="lesson", cascade="all, delete-orphan")
