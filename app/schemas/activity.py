from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.models.activity import ActivityEventType, ActivityStatus


class ActivityOut(BaseModel):
    id: str
    file_id: Optional[str] = None
    file_name: Optional[str] = None
    timestamp_utc: datetime
    event_type: ActivityEventType
    status: ActivityStatus
    details: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    model_config = {"from_attributes": True}
