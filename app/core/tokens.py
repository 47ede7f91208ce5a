"""Issuer for share access tokens and password-reset tokens."""
import hashlib
import secrets
from datetime import datetime, timedelta

from .config import get_settings

ACCESS_TOKEN_PREFIX = "tk_"
TOKEN_BYTES = 32


def issue_access_token() -> str:
    """Bearer token for a shared file. 256 bits of entropy, namespaced with ``tk_``."""
    return ACCESS_TOKEN_PREFIX + secrets.token_hex(TOKEN_BYTES)


def hash_reset_token(plaintext: str) -> str:
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def issue_reset_token() -> tuple[str, str]:
    """
    Return ``(plaintext, stored_hash)``.

    Only the hash is persisted; the plaintext goes to the user out-of-band.
    """
    plaintext = secrets.token_hex(TOKEN_BYTES)
    return plaintext, hash_reset_token(plaintext)


def reset_token_expiry(now: datetime) -> datetime:
    return now + timedelta(minutes=get_settings().reset_token_minutes)


def share_expiry(now: datetime, hours: int | None = None) -> datetime:
    if hours is None:
        hours = get_settings().share_default_expiry_hours
    return now + timedelta(hours=hours)
