import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ErrorCode, InvalidInputError, NotFoundError, store_errors
from app.core.time import Clock, utcnow
from app.models import Activity, ActivityStatus, SharedFile, ShareStatus, User, UserRole
from app.services import credential_store

logger = logging.getLogger(__name__)


def list_users(db: Session):
    return db.query(User).order_by(User.created_at_utc.desc()).all()


def _get_user(db: Session, user_id: str) -> User:
    user = credential_store.find_credential_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found", ErrorCode.USER_NOT_FOUND)
    return user


def change_user_role(db: Session, user_id: str, role: UserRole, acting_admin_id: str) -> User:
    if user_id == acting_admin_id and role != UserRole.ADMIN:
        raise InvalidInputError("Admins cannot remove their own admin role")
    with store_errors(db, "change_user_role"):
        user = _get_user(db, user_id)
        user.role = role
        db.add(user)
        db.commit()
        db.refresh(user)
    logger.info(f"Admin {acting_admin_id} set role of {user.id} to {role.value}")
    return user


def unlock_user(db: Session, user_id: str, acting_admin_id: str) -> User:
    """Lift a lockout before it lapses on its own."""
    with store_errors(db, "unlock_user"):
        user = _get_user(db, user_id)
        credential_store.reset_failed_attempts(db, user.id)
        db.commit()
        db.refresh(user)
    logger.info(f"Admin {acting_admin_id} cleared lockout on {user.id}")
    return user


def get_stats(db: Session, clock: Clock = utcnow) -> dict:
    now = clock()
    total_files = db.query(func.count(SharedFile.id)).scalar() or 0
    revoked = db.query(func.count(SharedFile.id)).filter(SharedFile.status == ShareStatus.REVOKED).scalar() or 0
    expired = (
        db.query(func.count(SharedFile.id))
        .filter(SharedFile.status == ShareStatus.ACTIVE, SharedFile.expiry_at_utc < now)
        .scalar()
        or 0
    )
    return {
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "locked_users": db.query(func.count(User.id)).filter(User.lock_until > now).scalar() or 0,
        "total_files": total_files,
        "active_links": total_files - revoked - expired,
        "revoked_links": revoked,
        "expired_links": expired,
        "total_downloads": db.query(func.coalesce(func.sum(SharedFile.used_downloads), 0)).scalar() or 0,
        "blocked_attempts": db.query(func.count(Activity.id)).filter(Activity.status == ActivityStatus.BLOCKED).scalar() or 0,
    }
