import pytest
from sqlalchemy.exc import OperationalError

from app.core import security
from app.core.exceptions import (
    ConflictError,
    ErrorCode,
    InternalServiceError,
    InvalidInputError,
    StoreUnavailableError,
    store_errors,
)
from app.models import User, UserRole
from app.services import admin_service, auth_service, credential_store, password_reset_service
from app.services.outcomes import Rejected


def test_register_rejects_duplicate_email(db):
    auth_service.register_user(db, "Dup@Example.com", "Secret123!", "First")
    with pytest.raises(ConflictError) as exc:
        auth_service.register_user(db, "dup@example.com", "Secret123!", "Second")
    assert exc.value.code == ErrorCode.USER_EXISTS
    assert exc.value.status_code == 409


def test_constraint_violation_is_internal_not_retryable(db, create_user):
    create_user(db, email="taken@example.com")

    with pytest.raises(InternalServiceError) as exc:
        with store_errors(db, "insert_user"):
            db.add(User(email="taken@example.com", name="Clash", password_hash="x", role=UserRole.USER))
            db.flush()

    assert exc.value.status_code == 500
    assert not getattr(exc.value, "retryable", False)
    assert db.query(User).count() == 1


def test_change_password_voids_pending_reset_token(db, clock, create_user):
    user = create_user(db, password="OldPass123")
    token = password_reset_service.request_password_reset(db, user.email, clock=clock)

    auth_service.change_password(db, user, "OldPass123", "Changed456")

    assert security.verify_password("Changed456", user.password_hash)
    assert user.reset_password_token is None
    assert user.reset_password_expiry is None
    replay = password_reset_service.reset_password(db, token, "Hijack789", clock=clock)
    assert replay == Rejected(ErrorCode.INVALID_RESET_TOKEN)


def test_change_password_requires_current_password(db, create_user):
    user = create_user(db, password="OldPass123")
    with pytest.raises(InvalidInputError) as exc:
        auth_service.change_password(db, user, "not-it", "Changed456")
    assert exc.value.code == ErrorCode.INVALID_PASSWORD


def test_change_password_store_outage(db, create_user, monkeypatch):
    user = create_user(db, password="OldPass123")

    def broken(*args, **kwargs):
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    monkeypatch.setattr(credential_store, "update_password", broken)

    with pytest.raises(StoreUnavailableError):
        auth_service.change_password(db, user, "OldPass123", "Changed456")
    db.refresh(user)
    assert security.verify_password("OldPass123", user.password_hash)


def test_change_user_role(db, create_user):
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)
    user = create_user(db)

    updated = admin_service.change_user_role(db, user.id, UserRole.ADMIN, acting_admin_id=admin.id)

    assert updated.role == UserRole.ADMIN


def test_admin_cannot_demote_self(db, create_user):
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)
    with pytest.raises(InvalidInputError):
        admin_service.change_user_role(db, admin.id, UserRole.USER, acting_admin_id=admin.id)


def test_change_user_role_store_outage(db, create_user, monkeypatch):
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)
    user = create_user(db)

    def broken(*args, **kwargs):
        raise OperationalError("SELECT users", {}, Exception("database is locked"))

    monkeypatch.setattr(credential_store, "find_credential_by_id", broken)

    with pytest.raises(StoreUnavailableError):
        admin_service.change_user_role(db, user.id, UserRole.ADMIN, acting_admin_id=admin.id)


def test_unlock_user_clears_lockout(db, clock, create_user):
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)
    user = create_user(db, failed_login_attempts=5, lock_until=clock())

    unlocked = admin_service.unlock_user(db, user.id, acting_admin_id=admin.id)

    assert unlocked.failed_login_attempts == 0
    assert unlocked.lock_until is None
