"""
Share-access gate and share link lifecycle.

Every request presenting an access token goes through ``check_share_access``.
The checks run in a fixed order and the first failing one decides the answer:

    1. no file for the token   -> 404 FILE_NOT_FOUND  (nothing logged)
    2. link revoked            -> 403 LINK_REVOKED
    3. link past its expiry    -> 403 LINK_EXPIRED
    4. download budget used up -> 403 LIMIT_EXCEEDED
    5. allowed

Each answer after step 1 writes exactly one activity event.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from fastapi import status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import ERROR_MESSAGES, ErrorCode, NotFoundError, store_errors
from app.core.time import Clock, ensure_aware, utcnow
from app.core.tokens import share_expiry
from app.models import ActivityEventType, ActivityStatus, SharedFile, ShareStatus, ShareVisibility
from app.services import share_store, storage_service
from app.services.activity_service import ClientInfo, prune_file_activities, record_activity

logger = logging.getLogger(__name__)

_BLOCK_REASONS = {
    ErrorCode.LINK_REVOKED: "link revoked",
    ErrorCode.LINK_EXPIRED: "token expired",
    ErrorCode.LIMIT_EXCEEDED: "limit exceeded",
}


@dataclass(frozen=True)
class ShareDecision:
    status_code: int
    error_code: Optional[ErrorCode] = None
    file: Optional[SharedFile] = None

    @property
    def allowed(self) -> bool:
        return self.error_code is None

    @property
    def message(self) -> Optional[str]:
        if self.error_code is None:
            return None
        return ERROR_MESSAGES[self.error_code]


def evaluate_share(file: SharedFile, now: datetime) -> Optional[ErrorCode]:
    """Steps 2-4 of the gate. Returns the blocking code, or None when the share is usable."""
    if file.status == ShareStatus.REVOKED:
        return ErrorCode.LINK_REVOKED
    if now > ensure_aware(file.expiry_at_utc):
        return ErrorCode.LINK_EXPIRED
    if file.max_downloads > 0 and file.used_downloads >= file.max_downloads:
        return ErrorCode.LIMIT_EXCEEDED
    return None


def check_share_access(
    db: Session,
    token: str,
    is_download: bool = False,
    client: Optional[ClientInfo] = None,
    clock: Clock = utcnow,
) -> ShareDecision:
    """
    Decide whether ``token`` may read the file's metadata or, with
    ``is_download``, consume one download slot.
    """
    with store_errors(db, "check_share_access"):
        now = clock()
        file = share_store.find_file_by_access_token(db, token)
        if not file:
            return ShareDecision(status.HTTP_404_NOT_FOUND, ErrorCode.FILE_NOT_FOUND)

        blocked = evaluate_share(file, now)
        if blocked:
            return _deny(db, file, blocked, is_download, client)

        if not is_download:
            record_activity(
                db, file.id, ActivityEventType.ACCESS_ATTEMPT, ActivityStatus.SUCCESS,
                "Token validated successfully", client,
            )
            return ShareDecision(status.HTTP_200_OK, file=file)

        if not share_store.atomic_increment_used_downloads(db, file.id, token, now):
            # Lost a race (or the link changed under us): judge again on fresh state
            fresh = share_store.find_file_by_access_token(db, token)
            if not fresh:
                return ShareDecision(status.HTTP_404_NOT_FOUND, ErrorCode.FILE_NOT_FOUND)
            blocked = evaluate_share(fresh, now) or ErrorCode.LIMIT_EXCEEDED
            return _deny(db, fresh, blocked, is_download, client)

        record_activity(
            db, file.id, ActivityEventType.DOWNLOAD_SUCCESS, ActivityStatus.SUCCESS,
            "File downloaded successfully", client, commit=False,
        )
        db.commit()
        db.refresh(file)
        logger.info(f"Download granted for file {file.id} ({file.used_downloads}/{file.max_downloads or 'unlimited'})")
        return ShareDecision(status.HTTP_200_OK, file=file)


def _deny(
    db: Session,
    file: SharedFile,
    code: ErrorCode,
    is_download: bool,
    client: Optional[ClientInfo],
) -> ShareDecision:
    if code == ErrorCode.LINK_REVOKED and not is_download:
        event_type = ActivityEventType.ACCESS_ATTEMPT
        details = "Access attempt with revoked token"
    else:
        event_type = ActivityEventType.DOWNLOAD_BLOCKED
        action = "Download" if is_download else "Access"
        details = f"{action} blocked - {_BLOCK_REASONS[code]}"

    record_activity(db, file.id, event_type, ActivityStatus.BLOCKED, details, client)
    logger.info(f"Share {file.id} blocked: {code.value}")
    return ShareDecision(status.HTTP_403_FORBIDDEN, code, file)


def _get_managed_file(db: Session, file_id: str, owner_id: Optional[str]) -> SharedFile:
    """Owner-scoped lookup; ``owner_id=None`` is the admin view over every file."""
    file = share_store.find_file(db, file_id, owner_id)
    if not file:
        raise NotFoundError("File not found", ErrorCode.FILE_NOT_FOUND)
    return file


def create_share(
    db: Session,
    owner_id: str,
    original_name: str,
    stored_name: str,
    storage_path: str,
    size: int,
    content_type: str,
    max_downloads: int = 0,
    expiry_hours: Optional[int] = None,
    visibility: ShareVisibility = ShareVisibility.PRIVATE,
    client: Optional[ClientInfo] = None,
    clock: Clock = utcnow,
) -> SharedFile:
    """Register an uploaded file and issue its first access token."""
    with store_errors(db, "create_share"):
        now = clock()
        created: List[SharedFile] = []

        def _write(token: str) -> None:
            created.clear()
            file = SharedFile(
                owner_id=owner_id,
                original_name=original_name,
                stored_name=stored_name,
                storage_path=storage_path,
                size=size,
                content_type=content_type,
                uploaded_at_utc=now,
                access_token=token,
                expiry_at_utc=share_expiry(now, expiry_hours),
                max_downloads=max_downloads,
                used_downloads=0,
                status=ShareStatus.ACTIVE,
                visibility=visibility,
            )
            db.add(file)
            created.append(file)

        share_store.write_with_fresh_token(db, _write)
        file = created[0]
        record_activity(
            db, file.id, ActivityEventType.ACCESS_ATTEMPT, ActivityStatus.INFO,
            f'File "{original_name}" uploaded and link generated', client, commit=False,
        )
        db.commit()
        db.refresh(file)
        logger.info(f"Created share {file.id} for owner {owner_id}")
        return file


def revoke_share(
    db: Session,
    file_id: str,
    owner_id: Optional[str] = None,
    client: Optional[ClientInfo] = None,
) -> SharedFile:
    """Move the link to revoked. Revoking an already revoked link is a quiet no-op."""
    with store_errors(db, "revoke_share"):
        file = _get_managed_file(db, file_id, owner_id)
        if share_store.mark_revoked(db, file.id):
            record_activity(
                db, file.id, ActivityEventType.LINK_REVOKED, ActivityStatus.BLOCKED,
                "Link revoked by file owner", client, commit=False,
            )
            logger.info(f"Share {file.id} revoked")
        db.commit()
        db.refresh(file)
        return file


def regenerate_share_token(
    db: Session,
    file_id: str,
    owner_id: Optional[str] = None,
    expiry_hours: Optional[int] = None,
    client: Optional[ClientInfo] = None,
    clock: Clock = utcnow,
) -> SharedFile:
    """
    Replace the access token, reactivate the link and open a fresh expiry window.

    The old token stops resolving immediately. The download counter is reset
    unless ``regenerate_resets_downloads`` is turned off.
    """
    with store_errors(db, "regenerate_share_token"):
        now = clock()
        settings = get_settings()
        file = _get_managed_file(db, file_id, owner_id)
        file_id = file.id
        share_store.rotate_access_token(
            db,
            file_id,
            expiry=share_expiry(now, expiry_hours),
            reset_downloads=settings.regenerate_resets_downloads,
        )
        record_activity(
            db, file_id, ActivityEventType.LINK_REGENERATED, ActivityStatus.INFO,
            "Access token regenerated by owner", client, commit=False,
        )
        db.commit()
        file = _get_managed_file(db, file_id, owner_id)
        db.refresh(file)
        logger.info(f"Share {file_id} token regenerated")
        return file


def list_owner_files(db: Session, owner_id: str) -> List[SharedFile]:
    return share_store.list_files(db, owner_id)


def list_all_files(db: Session) -> List[SharedFile]:
    return share_store.list_files(db)


def get_owner_file(db: Session, file_id: str, owner_id: Optional[str] = None) -> SharedFile:
    return _get_managed_file(db, file_id, owner_id)


def delete_share(db: Session, file_id: str, owner_id: Optional[str] = None) -> None:
    """Remove the record, its stored bytes and its activity trail."""
    with store_errors(db, "delete_share"):
        file = _get_managed_file(db, file_id, owner_id)
        storage_path = file.storage_path
        prune_file_activities(db, file.id)
        db.delete(file)
        db.commit()
    storage_service.delete_stored_file(storage_path)
    logger.info(f"Deleted share {file_id}")
