from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_current_user, get_db
from app.api.responses import ok, rejected
from app.core.config import get_settings
from app.core.rate_limit import login_failures
from app.core.time import Clock
from app.models import User, UserRole
from app.schemas.admin import UserOut
from app.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshRequest,
    RegisterRequest,
)
from app.services import auth_service, credential_store, lockout_service, password_reset_service
from app.services.outcomes import Accepted, Rejected

router = APIRouter(prefix="/api/auth", tags=["auth"])

RESET_REQUEST_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _session_payload(db: Session, outcome: Accepted) -> dict:
    user = credential_store.find_credential_by_id(db, outcome.user_id)
    return {"user": UserOut.model_validate(user), **auth_service.issue_session(outcome)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    user = auth_service.register_user(db, body.email, body.password, body.name)
    outcome = Accepted(user_id=user.id, email=user.email, role=user.role)
    return ok(_session_payload(db, outcome), status_code=status.HTTP_201_CREATED)


@router.post("/login")
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    client_key = login_failures.check(request)
    outcome = lockout_service.authenticate(db, body.email, body.password, clock=clock)
    if isinstance(outcome, Rejected):
        login_failures.record_failure(client_key)
        return rejected(outcome)
    return ok(_session_payload(db, outcome))


@router.post("/admin/login")
def admin_login(request: Request, body: LoginRequest, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    client_key = login_failures.check(request)
    outcome = lockout_service.authenticate(db, body.email, body.password, required_role=UserRole.ADMIN, clock=clock)
    if isinstance(outcome, Rejected):
        login_failures.record_failure(client_key)
        return rejected(outcome)
    return ok(_session_payload(db, outcome))


@router.post("/refresh")
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    return ok(auth_service.refresh_session(db, body.refresh_token))


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return ok({"user": UserOut.model_validate(user)})


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    auth_service.change_password(db, user, body.current_password, body.new_password)
    return ok({"message": "Password changed"})


@router.post("/password/reset-request")
def request_password_reset(
    body: PasswordResetRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    token = password_reset_service.request_password_reset(db, body.email, clock=clock)
    data = {"message": RESET_REQUEST_MESSAGE}
    if token and get_settings().expose_reset_token:
        data["resetToken"] = token
    return ok(data)


@router.post("/password/reset")
def reset_password(
    body: PasswordResetConfirm,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    outcome = password_reset_service.reset_password(db, body.token, body.new_password, clock=clock)
    if isinstance(outcome, Rejected):
        return rejected(outcome)
    return ok({"message": "Password has been reset successfully"})
