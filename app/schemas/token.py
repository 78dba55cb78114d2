from pydantic import BaseModel

from app.core.constants import RoleEnum

class TokenPayload(BaseModel):
    user_id: int | None = None
    role: RoleEnum = RoleEnum.STUDENT
    exp: int | None = None
