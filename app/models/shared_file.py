"""Model for uploaded files and the share link that governs them."""
import enum
import uuid

from sqlalchemy import BigInteger, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.core.time import utcnow
from app.db.base import Base


class ShareStatus(str, enum.Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class ShareVisibility(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class SharedFile(Base):
    """Uploaded file with its bearer access token, expiry and download budget."""
    __tablename__ = "shared_files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # File metadata
    original_name = Column(String(255), nullable=False)
    stored_name = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False, default=0)
    content_type = Column(String(255), nullable=False, default="application/octet-stream")
    storage_path = Column(String(512), nullable=False)
    uploaded_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Share link
    access_token = Column(String(80), nullable=False, unique=True, index=True)
    expiry_at_utc = Column(DateTime(timezone=True), nullable=False)
    max_downloads = Column(Integer, default=0, nullable=False)  # 0 = unlimited
    used_downloads = Column(Integer, default=0, nullable=False)
    status = Column(
        Enum(ShareStatus, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=ShareStatus.ACTIVE,
    )
    visibility = Column(
        Enum(ShareVisibility, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=ShareVisibility.PRIVATE,
    )

    owner = relationship("User", back_populates="files")
