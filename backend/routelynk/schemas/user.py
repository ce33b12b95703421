from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, EmailStr

class UserOut(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str] = None
    image: Optional[str] = None
    role: str
    status: str
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserProfileIn(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None

class RoleUpdate(BaseModel):
    # fraud is only reachable through the fraud endpoint
    role: Literal["user", "vendor", "admin"]

class StatusUpdate(BaseModel):
    status: Literal["active", "banned"]

class UserPage(BaseModel):
    items: List[UserOut]
    total: int
    page: int
    page_size: int
    total_pages: int

class FraudResult(BaseModel):
    user: UserOut
    rejected_tickets: int
