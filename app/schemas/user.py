from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime
from app.models.user import UserRole

class UserBase(BaseModel):
    email: EmailStr

class UserCreate(UserBase):
    role: UserRole
    business_name: Optional[str] = None
    display_name: Optional[str] = None

class UserResponse(UserBase):
    id: str
    role: UserRole
    business_name: Optional[str] = None
    display_name: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    last_login: Optional[datetime] = None

    @property
    def bank_name(self) -> str:
        return self.business_name or self.display_name or self.email
