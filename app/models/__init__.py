from .user import User, UserRole
from .shared_file import SharedFile, ShareStatus, ShareVisibility
from .activity import Activity, ActivityEventType, ActivityStatus

__all__ = [
    "User",
    "UserRole",
    "SharedFile",
    "ShareStatus",
    "ShareVisibility",
    "Activity",
    "ActivityEventType",
    "ActivityStatus",
]
