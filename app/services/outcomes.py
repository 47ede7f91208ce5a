"""Results returned by the credential services instead of raising on policy rejection."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from fastapi import status

from app.core.exceptions import ErrorCode
from app.models.user import UserRole

_REJECTION_STATUS = {
    ErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_ADMIN_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.ACCOUNT_LOCKED: status.HTTP_423_LOCKED,
    ErrorCode.INVALID_RESET_TOKEN: status.HTTP_400_BAD_REQUEST,
}


@dataclass(frozen=True)
class Accepted:
    user_id: str
    email: str
    role: UserRole


@dataclass(frozen=True)
class Rejected:
    code: ErrorCode
    lock_until: Optional[datetime] = None
    remaining_attempts: Optional[int] = None

    @property
    def status_code(self) -> int:
        return _REJECTION_STATUS.get(self.code, status.HTTP_400_BAD_REQUEST)


Outcome = Union[Accepted, Rejected]
