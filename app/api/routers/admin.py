from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_db, require_role
from app.api.responses import ok
from app.core.time import Clock
from app.models import ActivityEventType, ActivityStatus, User, UserRole
from app.schemas.activity import ActivityOut
from app.schemas.admin import AdminStats, AdminUserOut, RoleUpdate
from app.schemas.files import FileOut
from app.services import activity_service, admin_service, share_service

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/stats")
def stats(
    _: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return ok({"stats": AdminStats(**admin_service.get_stats(db, clock=clock))})


@router.get("/users")
def list_users(_: User = Depends(require_role(UserRole.ADMIN)), db: Session = Depends(get_db)):
    return ok({"users": [AdminUserOut.model_validate(u) for u in admin_service.list_users(db)]})


@router.patch("/users/{user_id}/role")
def change_role(
    user_id: str,
    body: RoleUpdate,
    admin: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    user = admin_service.change_user_role(db, user_id, body.role, acting_admin_id=admin.id)
    return ok({"user": AdminUserOut.model_validate(user)})


@router.post("/users/{user_id}/unlock")
def unlock_user(
    user_id: str,
    admin: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    user = admin_service.unlock_user(db, user_id, acting_admin_id=admin.id)
    return ok({"user": AdminUserOut.model_validate(user)})


@router.get("/files")
def list_files(_: User = Depends(require_role(UserRole.ADMIN)), db: Session = Depends(get_db)):
    return ok({"files": [FileOut.model_validate(f) for f in share_service.list_all_files(db)]})


@router.delete("/files/{file_id}")
def delete_any_file(
    file_id: str,
    _: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    share_service.delete_share(db, file_id)
    return ok({"message": "File deleted successfully"})


@router.get("/activities")
def list_activities(
    event_type: Optional[ActivityEventType] = None,
    status: Optional[ActivityStatus] = None,
    limit: int = Query(500, ge=1, le=5000),
    _: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    activities = activity_service.list_all_activities(db, event_type=event_type, status=status, limit=limit)
    return ok({"activities": [ActivityOut.model_validate(a) for a in activities]})
