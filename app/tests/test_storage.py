import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from app.core.config import get_settings
from app.core.exceptions import ErrorCode, InvalidInputError
from app.services import storage_service
from app.services.storage_service import check_declared_type, matches_signature, sanitize_filename

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture()
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(get_settings(), "upload_dir", str(path))
    return path


def make_upload(content: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(file=io.BytesIO(content), filename=filename, headers=Headers({"content-type": content_type}))


def test_sanitize_filename_strips_path_parts():
    assert sanitize_filename("../../etc/passwd.txt") == "etc_passwd.txt"
    assert sanitize_filename("quarterly report.pdf") == "quarterly_report.pdf"


def test_sanitize_filename_falls_back_when_nothing_survives():
    assert sanitize_filename("../").startswith("file_")
    assert sanitize_filename("").startswith("file_")


def test_sanitize_filename_caps_length_and_keeps_extension():
    name = sanitize_filename("a" * 400 + ".docx")
    assert len(name) == 255
    assert name.endswith(".docx")


def test_declared_type_must_agree_with_extension():
    assert check_declared_type("photo.png", "image/png") == []
    assert check_declared_type("photo.png", "application/pdf") == ["File extension does not match file content"]
    assert check_declared_type("archive.zip", "application/x-zip-compressed") == []


def test_signature_checks():
    assert matches_signature("pdf", b"%PDF-1.7\n")
    assert not matches_signature("pdf", b"<html>")
    assert matches_signature("docx", b"PK\x03\x04rest")
    assert matches_signature("txt", b"anything at all")


def test_valid_upload_is_stored(upload_dir):
    stored = storage_service.save_upload(make_upload(PNG, "logo.png", "image/png; charset=binary"))

    assert stored.original_name == "logo.png"
    assert stored.content_type == "image/png"
    assert stored.size == len(PNG)
    assert stored.stored_name.endswith(".png")
    assert (upload_dir / stored.stored_name).read_bytes() == PNG


def test_bad_signature_is_rejected_and_removed(upload_dir):
    with pytest.raises(InvalidInputError) as exc:
        storage_service.save_upload(make_upload(b"<script>alert(1)</script>", "report.pdf", "application/pdf"))

    assert exc.value.code == ErrorCode.VALIDATION_FAILED
    assert exc.value.meta["details"] == ["File content validation failed. The file may be corrupted or malicious."]
    assert list(upload_dir.iterdir()) == []


def test_oversize_upload_is_rejected_and_removed(upload_dir, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_file_size", 1024 * 1024)

    with pytest.raises(InvalidInputError) as exc:
        storage_service.save_upload(make_upload(b"x" * (1024 * 1024 + 1), "big.txt", "text/plain"))

    assert exc.value.meta["details"] == ["File size exceeds maximum allowed size of 1MB"]
    assert list(upload_dir.iterdir()) == []


def test_empty_upload_is_rejected(upload_dir):
    with pytest.raises(InvalidInputError) as exc:
        storage_service.save_upload(make_upload(b"", "empty.txt", "text/plain"))

    assert exc.value.meta["details"] == ["File is empty"]
    assert list(upload_dir.iterdir()) == []


def test_declared_type_is_checked_before_anything_is_written(upload_dir):
    with pytest.raises(InvalidInputError):
        storage_service.save_upload(make_upload(b"#!/bin/sh", "run.sh", "application/x-sh"))

    assert not upload_dir.exists()
