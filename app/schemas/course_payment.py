from pydantic import BaseModel, Field

class CoursePaymentCreate(BaseModel):
    user_id: int
    course_id: int
    external_reference: str
    amount: int = Field(..., ge=0)
    currency: str = "usd"
