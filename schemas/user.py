from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from models.user import UserRole


class Principal(BaseModel):
    """The authenticated caller as resolved by the role authority."""
    id: str
    role: UserRole

    class Config:
        from_attributes = True


class CourierResponse(BaseModel):
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    is_active: bool
    open_assignments: int = 0
    created_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ToggleActiveRequest(BaseModel):
    is_active: bool

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# Token Data Schema
class TokenData(BaseModel):
    user_id: Optional[str] = None
    role: Optional[UserRole] = None
