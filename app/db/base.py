from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models so Alembic can discover metadata
from app.models import (  # noqa: E402,F401
    activity,
    shared_file,
    user,
)
