from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.core.database import Base


class CoursePayment(Base):
    __tablename__ = "course_payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    external_reference = Column(String, unique=True, nullable=False) # Stripe checkout session id
    amount = Column(Integer, nullable=False) # minor units (cents)
    currency = Column(String, nullable=False, default="usd")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
