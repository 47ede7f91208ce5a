import logging
from datetime import timedelta

import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import security
from app.core.config import get_settings
from app.core.exceptions import AuthenticationError, ConflictError, ErrorCode, InvalidInputError, store_errors
from app.core.time import utcnow
from app.models import User, UserRole
from app.services import credential_store
from app.services.outcomes import Accepted

logger = logging.getLogger(__name__)


def register_user(db: Session, email: str, password: str, name: str) -> User:
    email = credential_store.normalize_email(email)
    if credential_store.find_credential_by_email(db, email):
        raise ConflictError("User with this email already exists", ErrorCode.USER_EXISTS)

    user = User(
        email=email,
        name=name.strip(),
        password_hash=security.hash_password(password),
        role=UserRole.USER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        db.rollback()
        raise ConflictError("User with this email already exists", ErrorCode.USER_EXISTS)
    db.refresh(user)
    logger.info(f"Registered account {user.id}")
    return user


def issue_session(accepted: Accepted) -> dict:
    settings = get_settings()
    return {
        "access_token": security.create_access_token(accepted.user_id, accepted.role.value),
        "refresh_token": security.create_refresh_token(accepted.user_id, accepted.role.value),
        "token_type": "bearer",
        "expires_at": utcnow() + timedelta(minutes=settings.access_token_exp_minutes),
    }


def refresh_session(db: Session, refresh_token: str) -> dict:
    """Exchange a refresh token for a new access token."""
    try:
        payload = security.decode_token(refresh_token)
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid or expired refresh token", ErrorCode.INVALID_REFRESH_TOKEN)

    if payload.get("type") != "refresh" or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired refresh token", ErrorCode.INVALID_REFRESH_TOKEN)

    user = credential_store.find_credential_by_id(db, payload["sub"])
    if not user:
        raise AuthenticationError("Invalid or expired refresh token", ErrorCode.INVALID_REFRESH_TOKEN)

    settings = get_settings()
    return {
        "access_token": security.create_access_token(user.id, user.role.value),
        "token_type": "bearer",
        "expires_at": utcnow() + timedelta(minutes=settings.access_token_exp_minutes),
    }


def change_password(db: Session, user: User, current_password: str, new_password: str) -> User:
    if not security.verify_password(current_password, user.password_hash):
        raise InvalidInputError("Current password invalid", ErrorCode.INVALID_PASSWORD)
    with store_errors(db, "change_password"):
        credential_store.update_password(db, user.id, security.hash_password(new_password))
        db.commit()
        db.refresh(user)
    logger.info(f"Password changed for account {user.id}")
    return user


def ensure_admin_exists(db: Session) -> User | None:
    """Seed an admin for dev environments when SHAREGATE_SEED_ADMIN_PASSWORD is set and none exist."""
    settings = get_settings()
    existing_admin = db.query(User).filter(User.role == UserRole.ADMIN).first()
    if existing_admin or not settings.seed_admin_password:
        return existing_admin

    with store_errors(db, "ensure_admin_exists"):
        user = User(
            email=credential_store.normalize_email(settings.seed_admin_email),
            name="Administrator",
            password_hash=security.hash_password(settings.seed_admin_password),
            role=UserRole.ADMIN,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    logger.info(f"Seeded admin account {user.email}")
    return user
