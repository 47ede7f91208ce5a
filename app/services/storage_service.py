"""Local disk storage for uploaded bytes, with content validation on the way in."""
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from fastapi import UploadFile
from werkzeug.utils import secure_filename

from app.core.config import get_settings
from app.core.exceptions import ErrorCode, InvalidInputError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
MAX_FILENAME_LENGTH = 255
SIGNATURE_BYTES = 12

ALLOWED_FILE_TYPES: Dict[str, Tuple[str, ...]] = {
    # documents
    "pdf": ("application/pdf",),
    "doc": ("application/msword",),
    "docx": ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",),
    "xls": ("application/vnd.ms-excel",),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",),
    "ppt": ("application/vnd.ms-powerpoint",),
    "pptx": ("application/vnd.openxmlformats-officedocument.presentationml.presentation",),
    "txt": ("text/plain",),
    # images
    "jpg": ("image/jpeg",),
    "jpeg": ("image/jpeg",),
    "png": ("image/png",),
    "gif": ("image/gif",),
    "webp": ("image/webp",),
    "svg": ("image/svg+xml",),
    # archives
    "zip": ("application/zip", "application/x-zip-compressed"),
    "rar": ("application/x-rar-compressed", "application/vnd.rar"),
    "7z": ("application/x-7z-compressed",),
}
ALLOWED_MIME_TYPES = {mime for mimes in ALLOWED_FILE_TYPES.values() for mime in mimes}

_ZIP = (b"PK\x03\x04",)
# Leading bytes a file must start with when its extension has a known signature
FILE_SIGNATURES: Dict[str, Tuple[bytes, ...]] = {
    "pdf": (b"%PDF",),
    "png": (b"\x89PNG\r\n\x1a\n",),
    "jpg": (b"\xff\xd8\xff",),
    "jpeg": (b"\xff\xd8\xff",),
    "gif": (b"GIF8",),
    "zip": (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08"),
    "docx": _ZIP,
    "xlsx": _ZIP,
    "pptx": _ZIP,
}


@dataclass(frozen=True)
class StoredUpload:
    original_name: str
    stored_name: str
    path: str
    size: int
    content_type: str


def sanitize_filename(filename: str) -> str:
    """Display-safe version of a client supplied name: no path parts, no control characters."""
    stem, ext = os.path.splitext(filename or "")
    safe_stem = secure_filename(stem) or f"file_{int(time.time())}"
    safe_ext = secure_filename(ext)
    safe_ext = f".{safe_ext}" if safe_ext else ""
    return safe_stem[: MAX_FILENAME_LENGTH - len(safe_ext)] + safe_ext


def file_extension(filename: str) -> str:
    return Path(filename).suffix.lower().lstrip(".")


def check_declared_type(filename: str, content_type: str) -> List[str]:
    """Extension and MIME type must both be allowed and agree with each other."""
    ext = file_extension(filename)
    errors = []
    if ext not in ALLOWED_FILE_TYPES:
        errors.append("File type not allowed. Please upload documents, images, or archives only.")
    if content_type not in ALLOWED_MIME_TYPES:
        errors.append("Invalid file MIME type")
    if content_type not in ALLOWED_FILE_TYPES.get(ext, ()):
        errors.append("File extension does not match file content")
    return errors


def matches_signature(ext: str, head: bytes) -> bool:
    """Types without a known signature (plain text, svg, ...) always pass."""
    signatures = FILE_SIGNATURES.get(ext)
    return not signatures or head.startswith(signatures)


def generate_stored_name(original_name: str) -> str:
    """Random name that keeps the original extension."""
    ext = Path(original_name).suffix
    return f"{uuid.uuid4()}{ext}"


def _rejected(errors: List[str]) -> InvalidInputError:
    return InvalidInputError("File validation failed", ErrorCode.VALIDATION_FAILED, details=errors)


def save_upload(upload: UploadFile) -> StoredUpload:
    """
    Validate and persist an upload.

    Raises InvalidInputError (VALIDATION_FAILED, with the reasons in
    ``details``) when the name, declared type, size or leading bytes are
    not acceptable. Nothing is left on disk in that case.
    """
    settings = get_settings()
    original_name = sanitize_filename(upload.filename or "")
    content_type = (upload.content_type or "application/octet-stream").split(";")[0].strip().lower()

    errors = check_declared_type(original_name, content_type)
    if errors:
        raise _rejected(errors)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    stored_name = generate_stored_name(original_name)
    path = upload_dir / stored_name
    size = 0
    head = b""
    try:
        with open(path, "wb") as out:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                if len(head) < SIGNATURE_BYTES:
                    head += chunk[: SIGNATURE_BYTES - len(head)]
                size += len(chunk)
                if size > settings.max_file_size:
                    limit_mb = round(settings.max_file_size / 1024 / 1024)
                    raise _rejected([f"File size exceeds maximum allowed size of {limit_mb}MB"])
                out.write(chunk)

        if size == 0:
            errors.append("File is empty")
        if not matches_signature(file_extension(original_name), head):
            errors.append("File content validation failed. The file may be corrupted or malicious.")
        if errors:
            raise _rejected(errors)
    except Exception:
        path.unlink(missing_ok=True)
        raise

    logger.info(f"Stored upload {original_name!r} as {stored_name} ({size} bytes)")
    return StoredUpload(
        original_name=original_name,
        stored_name=stored_name,
        path=str(path),
        size=size,
        content_type=content_type,
    )


def delete_stored_file(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)
        logger.info(f"Removed stored file {path}")
