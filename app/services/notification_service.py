"""Outbound notifications. Email delivery is not wired up yet; messages are only logged."""
import logging

logger = logging.getLogger(__name__)


def send_password_reset(email: str, reset_token: str) -> None:
    logger.info(f"Password reset link issued for {email} (token length {len(reset_token)})")
