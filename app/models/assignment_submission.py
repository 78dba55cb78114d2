from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import SubmissionStatusEnum


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"
    __table_args__ = (
        UniqueConstraint("user_id", "assignment_id", name="uq_assignment_submissions_user_assignment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id"), nullable=False, index=True)
    status = Column(Enum(SubmissionStatusEnum), nullable=False, default=SubmissionStatusEnum.PENDING)
    content = Column(String, nullable=True)
    grade = Column(Float, nullable=True)
    feedback = Column(String, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    graded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="assignment_submissions", foreign_keys=[user_id])
    assignment = relationship("Assignment", back_populates="submissions")
