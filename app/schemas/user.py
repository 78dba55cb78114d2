from pydantic import BaseModel, ConfigDict, EmailStr
from typing import Optional

from app.core.constants import RoleEnum

class UserBase(BaseModel):
    full_name: Optional[str] = None
    email: EmailStr

class User(UserBase):
    id: int
    is_active: bool
    model_config = ConfigDict(from_attributes=True)

class UserContext(BaseModel):
    """The authenticated caller: identity plus the role carried by the token."""
    user: User
    role: RoleEnum
    model_config = ConfigDict(from_attributes=True)
