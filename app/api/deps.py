from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError, ErrorCode, PermissionDeniedError
from app.core.security import decode_token
from app.core.time import Clock, utcnow
from app.db.session import SessionLocal
from app.models import User, UserRole
from app.services import credential_store
from app.services.activity_service import ClientInfo

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return utcnow


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme), db: Session = Depends(get_db)
) -> User:
    if credentials is None:
        raise AuthenticationError("Not authenticated", ErrorCode.NOT_AUTHENTICATED)
    try:
        payload = decode_token(credentials.credentials)
    except Exception:
        raise AuthenticationError("Invalid token", ErrorCode.NOT_AUTHENTICATED)

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type", ErrorCode.NOT_AUTHENTICATED)

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload", ErrorCode.NOT_AUTHENTICATED)

    user = credential_store.find_credential_by_id(db, user_id)
    if not user:
        raise AuthenticationError("User not found", ErrorCode.NOT_AUTHENTICATED)
    return user


def require_role(role: UserRole):
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise PermissionDeniedError("Insufficient role")
        return user

    return checker
