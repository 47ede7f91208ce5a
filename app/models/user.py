import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from app.core.time import utcnow
from app.db.base import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """Account credential plus its lockout and password-reset state."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # stored lower-cased so lookups are case-insensitive
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=UserRole.USER)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Lockout counters
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime(timezone=True), nullable=True)

    # Password reset (sha256 of the plaintext; set together with the expiry)
    reset_password_token = Column(String(64), nullable=True, index=True)
    reset_password_expiry = Column(DateTime(timezone=True), nullable=True)

    files = relationship("SharedFile", back_populates="owner", cascade="all, delete-orphan")
