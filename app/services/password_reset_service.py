"""Password reset via single-use, time-boxed tokens delivered out-of-band."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core import security
from app.core.exceptions import ErrorCode, store_errors
from app.core.time import Clock, utcnow
from app.core.tokens import hash_reset_token, issue_reset_token, reset_token_expiry
from app.services import credential_store, notification_service
from app.services.outcomes import Accepted, Outcome, Rejected

logger = logging.getLogger(__name__)


def request_password_reset(db: Session, email: str, clock: Clock = utcnow) -> Optional[str]:
    """
    Issue a reset token for ``email`` and send it to the account holder.

    Returns the plaintext token, or None when no account matches. Callers
    must answer both cases identically so the endpoint cannot be used to
    enumerate registered emails.
    """
    with store_errors(db, "request_password_reset"):
        user = credential_store.find_credential_by_email(db, email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return None

        plaintext, token_hash = issue_reset_token()
        credential_store.store_reset_token(db, user.id, token_hash, reset_token_expiry(clock()))
        user_email = user.email
        db.commit()

    notification_service.send_password_reset(user_email, plaintext)
    return plaintext


def reset_password(db: Session, token: str, new_password: str, clock: Clock = utcnow) -> Outcome:
    """Set a new password with a reset token. Also lifts any lockout on the account."""
    with store_errors(db, "reset_password"):
        user = credential_store.consume_reset_token(
            db,
            hash_reset_token(token),
            security.hash_password(new_password),
            clock(),
        )
        if not user:
            return Rejected(ErrorCode.INVALID_RESET_TOKEN)

        accepted = Accepted(user_id=user.id, email=user.email, role=user.role)
        db.commit()
        logger.info(f"Password reset completed for account {accepted.user_id}")
        return accepted
