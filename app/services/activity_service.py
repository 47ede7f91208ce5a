"""
Service for the share activity trail
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import store_errors
from app.core.time import utcnow
from app.models import Activity, ActivityEventType, ActivityStatus, SharedFile


@dataclass(frozen=True)
class ClientInfo:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def record_activity(
    db: Session,
    file_id: Optional[str],
    event_type: ActivityEventType,
    status: ActivityStatus,
    details: str,
    client: Optional[ClientInfo] = None,
    commit: bool = True,
) -> Activity:
    """
    Append an event to the activity trail.

    Args:
        db: Database session
        file_id: Shared file the event is attributed to, None for rejected uploads
        event_type: Kind of event
        status: success / blocked / info
        details: Human readable description
        client: Requesting client's IP and user agent, if known
        commit: Pass False to let the caller commit the event together with
            the state change it describes

    Returns:
        Created Activity entry
    """
    client = client or ClientInfo()
    entry = Activity(
        file_id=file_id,
        timestamp_utc=utcnow(),
        event_type=event_type,
        status=status,
        details=details,
        ip_address=client.ip_address,
        user_agent=client.user_agent[:512] if client.user_agent else None,
    )
    db.add(entry)
    if commit:
        db.commit()
    return entry


def record_upload_blocked(db: Session, reasons: List[str], client: Optional[ClientInfo] = None) -> Activity:
    """Log an upload refused by content validation. There is no file to attribute it to."""
    with store_errors(db, "record_upload_blocked"):
        return record_activity(
            db,
            None,
            ActivityEventType.UPLOAD_BLOCKED,
            ActivityStatus.BLOCKED,
            f"File upload blocked: {', '.join(reasons)}",
            client,
        )


def list_file_activities(db: Session, file_id: str, limit: int = 100) -> List[Activity]:
    return (
        db.query(Activity)
        .filter(Activity.file_id == file_id)
        .order_by(Activity.timestamp_utc.desc())
        .limit(limit)
        .all()
    )


def list_owner_activities(db: Session, owner_id: str, limit: int = 500) -> List[Tuple[Activity, str]]:
    """Events for every file the owner still has, paired with the file's original name."""
    return (
        db.query(Activity, SharedFile.original_name)
        .join(SharedFile, Activity.file_id == SharedFile.id)
        .filter(SharedFile.owner_id == owner_id)
        .order_by(Activity.timestamp_utc.desc())
        .limit(limit)
        .all()
    )


def list_all_activities(
    db: Session,
    event_type: Optional[ActivityEventType] = None,
    status: Optional[ActivityStatus] = None,
    limit: int = 500,
) -> List[Activity]:
    query = db.query(Activity)

    if event_type:
        query = query.filter(Activity.event_type == event_type)

    if status:
        query = query.filter(Activity.status == status)

    return query.order_by(Activity.timestamp_utc.desc()).limit(limit).all()


def prune_file_activities(db: Session, file_id: str) -> int:
    """Delete a removed file's events. Does not commit."""
    return db.query(Activity).filter(Activity.file_id == file_id).delete(synchronize_session=False)
