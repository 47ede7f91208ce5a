from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from app.models.user import UserRole


class UserOut(BaseModel):
    id: str
    email: EmailStr
    name: str
    role: UserRole
    created_at_utc: datetime

    model_config = {"from_attributes": True}


class AdminUserOut(UserOut):
    failed_login_attempts: int
    lock_until: Optional[datetime] = None


class RoleUpdate(BaseModel):
    role: UserRole


class AdminStats(BaseModel):
    total_users: int
    locked_users: int
    total_files: int
    active_links: int
    revoked_links: int
    expired_links: int
    total_downloads: int
    blocked_attempts: int
