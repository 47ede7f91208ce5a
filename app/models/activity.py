"""
Share activity log model
"""
import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, String, Text

from app.core.time import utcnow
from app.db.base import Base


class ActivityEventType(str, enum.Enum):
    """Types of share events"""
    DOWNLOAD_SUCCESS = "download_success"
    DOWNLOAD_BLOCKED = "download_blocked"
    LINK_REGENERATED = "link_regenerated"
    LINK_REVOKED = "link_revoked"
    ACCESS_ATTEMPT = "access_attempt"
    UPLOAD_BLOCKED = "upload_blocked"


class ActivityStatus(str, enum.Enum):
    SUCCESS = "success"
    BLOCKED = "blocked"
    INFO = "info"


class Activity(Base):
    """Append-only record of every decision taken on a shared file"""
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Not a foreign key: events outlive the file until the deleter prunes them.
    # Empty for rejected uploads, which never became a file.
    file_id = Column(String(36), nullable=True, index=True)
    timestamp_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    event_type = Column(Enum(ActivityEventType, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    status = Column(Enum(ActivityStatus, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    details = Column(Text, nullable=False)
    ip_address = Column(String(45), nullable=True)  # IPv6 max length
    user_agent = Column(String(512), nullable=True)
