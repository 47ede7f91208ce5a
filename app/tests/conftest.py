import os

os.environ.setdefault("SHAREGATE_JWT_SECRET", "test-secret-0123456789abcdef0123456789abcdef")
os.environ.setdefault("SHAREGATE_DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.core import security  # noqa: E402
from app.core.tokens import issue_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.models import SharedFile, ShareStatus, User, UserRole  # noqa: E402


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def db():
    engine = create_engine("sqlite:///:memory:", future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def session_factory(tmp_path):
    """Independent sessions over one file-backed database, for interleaving requests."""
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", future=True)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


def make_user(db, email="user@example.com", password="Secret123!", role=UserRole.USER, **fields) -> User:
    user = User(
        email=email.lower(),
        name=fields.pop("name", "Test User"),
        password_hash=security.hash_password(password),
        role=role,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_file(db, owner: User, clock: FrozenClock, **fields) -> SharedFile:
    values = {
        "original_name": "report.pdf",
        "stored_name": "stored-report.pdf",
        "storage_path": "/nonexistent/stored-report.pdf",
        "size": 1024,
        "content_type": "application/pdf",
        "uploaded_at_utc": clock(),
        "access_token": issue_access_token(),
        "expiry_at_utc": clock() + timedelta(hours=24),
        "max_downloads": 0,
        "used_downloads": 0,
        "status": ShareStatus.ACTIVE,
    }
    values.update(fields)
    file = SharedFile(owner_id=owner.id, **values)
    db.add(file)
    db.commit()
    db.refresh(file)
    return file


@pytest.fixture()
def create_user():
    return make_user


@pytest.fixture()
def create_file():
    return make_file
