from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.api.responses import ok
from app.models import User
from app.schemas.activity import ActivityOut
from app.services import activity_service, share_service

router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.get("")
def list_my_activities(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Activity across every file the caller owns, newest first."""
    rows = activity_service.list_owner_activities(db, user.id)
    activities = []
    for activity, file_name in rows:
        item = ActivityOut.model_validate(activity)
        item.file_name = file_name
        activities.append(item)
    return ok({"activities": activities})


@router.get("/{file_id}")
def list_file_activities(file_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    file = share_service.get_owner_file(db, file_id, user.id)
    activities = activity_service.list_file_activities(db, file.id)
    return ok({"activities": [ActivityOut.model_validate(a) for a in activities]})
