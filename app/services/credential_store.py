"""
Persistence operations for credentials.

Counter mutations are single UPDATE statements evaluated by the database so
concurrent logins against one account cannot lose an increment. None of these
functions commit; the caller commits once the decision is final.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from app.core.time import ensure_aware
from app.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_credential_by_email(db: Session, email: str) -> Optional[User]:
    # counters are written by bulk UPDATEs that bypass the identity map
    return db.query(User).populate_existing().filter(User.email == normalize_email(email)).first()


def find_credential_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).populate_existing().filter(User.id == user_id).first()


def atomic_increment_failed_attempts(db: Session, user_id: str) -> int:
    """Increment in the store and return the post-increment value."""
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(failed_login_attempts=User.failed_login_attempts + 1)
        .execution_options(synchronize_session=False)
    )
    return db.execute(select(User.failed_login_attempts).where(User.id == user_id)).scalar_one()


def restart_failed_attempts(db: Session, user_id: str, now: datetime) -> bool:
    """
    Lazy lock expiry: a failure after the lock lapsed counts as the first of a new run.

    Returns False when another request already restarted the counter.
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.lock_until.is_not(None), User.lock_until <= now)
        .values(failed_login_attempts=1, lock_until=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def lock_credential(db: Session, user_id: str, until: datetime, now: datetime) -> datetime:
    """Set lock_until unless a live lock is already in place; return the effective value."""
    db.execute(
        update(User)
        .where(User.id == user_id, or_(User.lock_until.is_(None), User.lock_until <= now))
        .values(lock_until=until)
        .execution_options(synchronize_session=False)
    )
    current = db.execute(select(User.lock_until).where(User.id == user_id)).scalar_one()
    return ensure_aware(current)


def reset_failed_attempts(db: Session, user_id: str) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(failed_login_attempts=0, lock_until=None)
        .execution_options(synchronize_session=False)
    )


def update_password(db: Session, user_id: str, password_hash: str) -> None:
    """Replace the password hash and void any outstanding reset token."""
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(password_hash=password_hash, reset_password_token=None, reset_password_expiry=None)
        .execution_options(synchronize_session=False)
    )


def store_reset_token(db: Session, user_id: str, token_hash: str, expiry: datetime) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(reset_password_token=token_hash, reset_password_expiry=expiry)
        .execution_options(synchronize_session=False)
    )


def consume_reset_token(db: Session, token_hash: str, new_password_hash: str, now: datetime) -> Optional[User]:
    """
    Swap the password for the holder of a live reset token.

    The token, its expiry and the lockout counters are cleared by the same
    conditional UPDATE, so a replayed token matches nothing.
    """
    user = (
        db.query(User)
        .filter(User.reset_password_token == token_hash, User.reset_password_expiry > now)
        .first()
    )
    if not user:
        return None

    result = db.execute(
        update(User)
        .where(
            User.id == user.id,
            User.reset_password_token == token_hash,
            User.reset_password_expiry > now,
        )
        .values(
            password_hash=new_password_hash,
            reset_password_token=None,
            reset_password_expiry=None,
            failed_login_attempts=0,
            lock_until=None,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return user
