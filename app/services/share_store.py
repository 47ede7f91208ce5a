"""
Persistence operations for shared files.

Like the credential store, nothing here commits.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import InternalServiceError
from app.core.tokens import issue_access_token
from app.models import SharedFile, ShareStatus

logger = logging.getLogger(__name__)

TOKEN_WRITE_ATTEMPTS = 3


def find_file_by_access_token(db: Session, token: str) -> Optional[SharedFile]:
    stmt = select(SharedFile).where(SharedFile.access_token == token).execution_options(populate_existing=True)
    return db.execute(stmt).scalar_one_or_none()


def find_file(db: Session, file_id: str, owner_id: Optional[str] = None) -> Optional[SharedFile]:
    query = db.query(SharedFile).populate_existing().filter(SharedFile.id == file_id)
    if owner_id is not None:
        query = query.filter(SharedFile.owner_id == owner_id)
    return query.first()


def list_files(db: Session, owner_id: Optional[str] = None) -> List[SharedFile]:
    query = db.query(SharedFile)
    if owner_id is not None:
        query = query.filter(SharedFile.owner_id == owner_id)
    return query.order_by(SharedFile.uploaded_at_utc.desc()).all()


def atomic_increment_used_downloads(db: Session, file_id: str, token: str, now: datetime) -> bool:
    """
    Take one download slot if the share is still grantable.

    Every gate condition is repeated in the WHERE clause so that two requests
    racing for the last slot cannot both pass; the loser updates zero rows.
    """
    result = db.execute(
        update(SharedFile)
        .where(
            SharedFile.id == file_id,
            SharedFile.access_token == token,
            SharedFile.status == ShareStatus.ACTIVE,
            SharedFile.expiry_at_utc >= now,
            or_(SharedFile.max_downloads == 0, SharedFile.used_downloads < SharedFile.max_downloads),
        )
        .values(used_downloads=SharedFile.used_downloads + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def mark_revoked(db: Session, file_id: str) -> bool:
    """Return True only for the request that actually moved the share to revoked."""
    result = db.execute(
        update(SharedFile)
        .where(SharedFile.id == file_id, SharedFile.status == ShareStatus.ACTIVE)
        .values(status=ShareStatus.REVOKED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def write_with_fresh_token(db: Session, write: Callable[[str], None]) -> str:
    """
    Run ``write`` with a newly issued access token, retrying on a unique-index clash.

    ``write`` must perform the unit of work's first statements: a clash rolls
    back the whole transaction before the next attempt.
    """
    for attempt in range(1, TOKEN_WRITE_ATTEMPTS + 1):
        token = issue_access_token()
        try:
            write(token)
            db.flush()
            return token
        except IntegrityError:
            db.rollback()
            logger.warning(f"Access token collision on attempt {attempt}, reissuing")
    raise InternalServiceError("Could not allocate a unique access token")


def rotate_access_token(
    db: Session,
    file_id: str,
    expiry: datetime,
    reset_downloads: bool,
) -> str:
    def _write(token: str) -> None:
        values = {
            "access_token": token,
            "status": ShareStatus.ACTIVE,
            "expiry_at_utc": expiry,
        }
        if reset_downloads:
            values["used_downloads"] = 0
        db.execute(
            update(SharedFile)
            .where(SharedFile.id == file_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    return write_with_fresh_token(db, _write)
