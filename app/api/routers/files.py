"""API endpoints for uploading files and managing or using their share links."""
import logging
import os

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.api.deps import get_client_info, get_clock, get_current_user, get_db
from app.api.responses import error, ok
from app.core.config import get_settings
from app.core.exceptions import ErrorCode, InvalidInputError
from app.core.rate_limit import limiter
from app.core.time import Clock
from app.models import SharedFile, ShareVisibility, User
from app.schemas.files import FileOut, LinkStateOut, RegenerateRequest, SharedFileMetadata
from app.services import activity_service, share_service, storage_service
from app.services.activity_service import ClientInfo
from app.services.share_service import ShareDecision

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/files", tags=["files"])


def _denied(decision: ShareDecision):
    return error(decision.status_code, decision.error_code)


def _public_metadata(file: SharedFile) -> SharedFileMetadata:
    return SharedFileMetadata(
        id=file.id,
        name=file.original_name,
        size=file.size,
        type=file.content_type,
        uploaded_at_utc=file.uploaded_at_utc,
        expiry_at_utc=file.expiry_at_utc,
        max_downloads=file.max_downloads,
        used_downloads=file.used_downloads,
        visibility=file.visibility,
        uploaded_by_name=file.owner.name if file.owner else None,
    )


@router.post("/upload", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.upload_rate_limit)
def upload_file(
    request: Request,
    file: UploadFile = File(...),
    max_downloads: int = Form(0, ge=0),
    expiry_hours: int = Form(24, ge=1, le=24 * 365),
    visibility: ShareVisibility = Form(ShareVisibility.PRIVATE),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: ClientInfo = Depends(get_client_info),
    clock: Clock = Depends(get_clock),
):
    """
    Store an uploaded file and issue its share link.

    ``max_downloads=0`` means unlimited downloads. Files that fail content
    validation are refused with the reasons and logged as ``upload_blocked``.
    """
    try:
        stored = storage_service.save_upload(file)
    except InvalidInputError as e:
        logger.warning(f"Upload by {user.id} blocked: {e.meta.get('details')}")
        activity_service.record_upload_blocked(db, e.meta.get("details") or [e.message], client)
        raise
    try:
        shared = share_service.create_share(
            db,
            owner_id=user.id,
            original_name=stored.original_name,
            stored_name=stored.stored_name,
            storage_path=stored.path,
            size=stored.size,
            content_type=stored.content_type,
            max_downloads=max_downloads,
            expiry_hours=expiry_hours,
            visibility=visibility,
            client=client,
            clock=clock,
        )
    except Exception:
        storage_service.delete_stored_file(stored.path)
        raise
    return ok({"file": FileOut.model_validate(shared)}, status_code=status.HTTP_201_CREATED)


@router.get("")
def list_my_files(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    files = share_service.list_owner_files(db, user.id)
    return ok({"files": [FileOut.model_validate(f) for f in files]})


@router.get("/access/{token}")
def access_file(
    token: str,
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
    clock: Clock = Depends(get_clock),
):
    """Validate a share token and return what the holder may see. No slot is consumed."""
    decision = share_service.check_share_access(db, token, is_download=False, client=client, clock=clock)
    if not decision.allowed:
        return _denied(decision)
    return ok({"file": _public_metadata(decision.file)})


@router.get("/download/{token}")
@limiter.limit(settings.download_rate_limit)
def download_file(
    request: Request,
    token: str,
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
    clock: Clock = Depends(get_clock),
):
    """Consume one download slot and stream the file."""
    decision = share_service.check_share_access(db, token, is_download=True, client=client, clock=clock)
    if not decision.allowed:
        return _denied(decision)

    # captured now so a regenerate after this point does not affect this transfer
    path = decision.file.storage_path
    filename = decision.file.original_name
    media_type = decision.file.content_type
    if not os.path.exists(path):
        logger.error(f"Stored bytes missing for file {decision.file.id} at {path}")
        return error(status.HTTP_404_NOT_FOUND, ErrorCode.FILE_NOT_FOUND)
    return FileResponse(path, filename=filename, media_type=media_type)


@router.get("/{file_id}")
def get_file(file_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    file = share_service.get_owner_file(db, file_id, user.id)
    return ok({"file": FileOut.model_validate(file)})


@router.patch("/{file_id}/revoke")
def revoke_file(
    file_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: ClientInfo = Depends(get_client_info),
):
    file = share_service.revoke_share(db, file_id, owner_id=user.id, client=client)
    return ok({"file": {"id": file.id, "status": file.status}})


@router.patch("/{file_id}/regenerate-token")
def regenerate_token(
    file_id: str,
    body: RegenerateRequest | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: ClientInfo = Depends(get_client_info),
    clock: Clock = Depends(get_clock),
):
    file = share_service.regenerate_share_token(
        db,
        file_id,
        owner_id=user.id,
        expiry_hours=body.expiry_hours if body else None,
        client=client,
        clock=clock,
    )
    return ok({"file": LinkStateOut.model_validate(file)})


@router.delete("/{file_id}")
def delete_file(file_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    share_service.delete_share(db, file_id, owner_id=user.id)
    return ok({"message": "File deleted successfully"})
