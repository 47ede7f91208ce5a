"""
Login gate with per-account lockout.

Each credential is either ``Unlocked(attempts)`` or ``Locked(until)``. A wrong
password moves ``Unlocked(n)`` to ``Unlocked(n + 1)`` until the increment
reaches the threshold, which yields ``Locked(now + lock duration)``. While a
lock is live every attempt is refused without looking at the password. Locks
are never swept: a lapsed lock is noticed on the next failure, which restarts
the count at 1.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from sqlalchemy.orm import Session

from app.core import security
from app.core.config import get_settings
from app.core.exceptions import ErrorCode, store_errors
from app.core.time import Clock, ensure_aware, utcnow
from app.models import User, UserRole
from app.services import credential_store
from app.services.outcomes import Accepted, Outcome, Rejected

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unlocked:
    attempts: int


@dataclass(frozen=True)
class Locked:
    until: datetime

    def expired(self, now: datetime) -> bool:
        return now >= self.until


LockState = Union[Unlocked, Locked]


@dataclass(frozen=True)
class LockoutPolicy:
    max_attempts: int = 5
    lock_duration: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls) -> "LockoutPolicy":
        settings = get_settings()
        return cls(
            max_attempts=settings.max_login_attempts,
            lock_duration=timedelta(minutes=settings.lock_minutes),
        )


def lock_state(user: User) -> LockState:
    until = ensure_aware(user.lock_until)
    if until is not None:
        return Locked(until)
    return Unlocked(user.failed_login_attempts or 0)


def state_after_failure(attempts: int, now: datetime, policy: LockoutPolicy) -> LockState:
    """Transition taken once the store reports the post-increment attempt count."""
    if attempts >= policy.max_attempts:
        return Locked(now + policy.lock_duration)
    return Unlocked(attempts)


def authenticate(
    db: Session,
    email: str,
    password: str,
    required_role: Optional[UserRole] = None,
    clock: Clock = utcnow,
    policy: Optional[LockoutPolicy] = None,
) -> Outcome:
    """
    Decide a login attempt and persist the resulting lockout state.

    With ``required_role`` set (admin login) generic failures are reported as
    INVALID_ADMIN_CREDENTIALS and carry no remaining-attempts hint. A correct
    password on an account without the role is refused without touching the
    counters.
    """
    policy = policy or LockoutPolicy.from_settings()
    generic = ErrorCode.INVALID_ADMIN_CREDENTIALS if required_role else ErrorCode.INVALID_CREDENTIALS

    with store_errors(db, "authenticate"):
        now = clock()
        user = credential_store.find_credential_by_email(db, email)
        if not user:
            security.burn_password_check(password)
            return Rejected(generic)

        state = lock_state(user)
        if isinstance(state, Locked) and not state.expired(now):
            logger.info(f"Login refused for locked account {user.id} (locked until {state.until.isoformat()})")
            return Rejected(ErrorCode.ACCOUNT_LOCKED, lock_until=state.until)

        if not security.verify_password(password, user.password_hash):
            return _register_failure(db, user, state, now, policy, generic, required_role)

        if required_role is not None and user.role != required_role:
            logger.warning(f"Account {user.id} attempted {required_role.value} login without the role")
            return Rejected(generic)

        accepted = Accepted(user_id=user.id, email=user.email, role=user.role)
        credential_store.reset_failed_attempts(db, user.id)
        db.commit()
        return accepted


def _register_failure(
    db: Session,
    user: User,
    state: LockState,
    now: datetime,
    policy: LockoutPolicy,
    generic: ErrorCode,
    required_role: Optional[UserRole],
) -> Rejected:
    if isinstance(state, Locked) and credential_store.restart_failed_attempts(db, user.id, now):
        db.commit()
        attempts = 1
    else:
        attempts = credential_store.atomic_increment_failed_attempts(db, user.id)
        next_state = state_after_failure(attempts, now, policy)
        if isinstance(next_state, Locked):
            until = credential_store.lock_credential(db, user.id, next_state.until, now)
            db.commit()
            logger.warning(f"Account {user.id} locked until {until.isoformat()} after {attempts} failed attempts")
            return Rejected(ErrorCode.ACCOUNT_LOCKED, lock_until=until)
        db.commit()

    if required_role is not None:
        return Rejected(generic)
    return Rejected(generic, remaining_attempts=max(policy.max_attempts - attempts, 0))
