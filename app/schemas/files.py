"""Pydantic schemas for shared files."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.shared_file import ShareStatus, ShareVisibility


class FileOut(BaseModel):
    """Owner's view of a file, including its access token."""
    id: str
    name: str = Field(validation_alias="original_name")
    size: int
    type: str = Field(validation_alias="content_type")
    uploaded_at_utc: datetime
    access_token: str
    expiry_at_utc: datetime
    max_downloads: int
    used_downloads: int
    status: ShareStatus
    visibility: ShareVisibility
    owner_id: str

    model_config = {"from_attributes": True}


class SharedFileMetadata(BaseModel):
    """What a token holder is allowed to see before downloading."""
    id: str
    name: str
    size: int
    type: str
    uploaded_at_utc: datetime
    expiry_at_utc: datetime
    max_downloads: int
    used_downloads: int
    visibility: ShareVisibility
    uploaded_by_name: Optional[str] = None


class RegenerateRequest(BaseModel):
    expiry_hours: Optional[int] = Field(None, ge=1, le=24 * 365)


class LinkStateOut(BaseModel):
    id: str
    access_token: str
    expiry_at_utc: datetime
    used_downloads: int
    status: ShareStatus

    model_config = {"from_attributes": True}
