"""Account and team notifications.

Email delivery is handled outside this service; each notification logs the
link it would send. Functions are plain coroutines so routers can hand them
to ``BackgroundTasks``.
"""

import logging
import secrets
from datetime import datetime, timedelta

from app.config import get_settings

logger = logging.getLogger(__name__)


def generate_token() -> str:
    """Single-use token for verification and reset links."""
    return secrets.token_hex(32)


def token_expiry(hours: int) -> datetime:
    return datetime.utcnow() + timedelta(hours=hours)


def client_link(path: str, param: str, token: str) -> str:
    return f"{get_settings().client_url}/{path}?{param}={token}"


async def send_invitation_email(email: str, token: str, invited_by: str, role: str):
    logger.info(
        "Invitation for %s (%s) from %s: %s",
        email,
        role,
        invited_by,
        client_link("signup", "invite", token),
    )


async def send_verification_email(email: str, token: str):
    logger.info("Email verification for %s: %s", email, client_link("verify-email", "token", token))


async def send_password_reset_email(email: str, token: str):
    logger.info("Password reset for %s: %s", email, client_link("reset-password", "token", token))


async def send_email_change_email(new_email: str, token: str):
    logger.info("Email change confirmation for %s: %s", new_email, client_link("verify-email-change", "token", token))
