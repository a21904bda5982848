"""
Composes account emails and hands them to the configured EmailSender.
"""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from app.core.config import get_settings
from app.core.logging import get_logger
from app.services.interfaces.email_sender import EmailMessage, EmailSender

logger = get_logger(__name__)


class LoggingEmailSender(EmailSender):
    """
    Writes messages to the log instead of delivering them.
    Links are logged with their token stripped; the token only ever
    travels inside the message handed to a real transport.
    """

    async def send(self, message: EmailMessage) -> None:
        logger.info(
            "email_sent",
            to=message.to,
            subject=message.subject,
            link=strip_token(message.action_url),
        )


def strip_token(url: str) -> str:
    parts = urlsplit(url)
    query = [(k, "[redacted]" if k == "token" else v) for k, v in parse_qsl(parts.query)]
    return urlunsplit(parts._replace(query=urlencode(query, safe="[]")))


def _link(path: str, token: str) -> str:
    base = get_settings().APP_BASE_URL.rstrip("/")
    return f"{base}{path}?token={token}"


async def send_verification_email(sender: EmailSender, email: str, token: str) -> None:
    url = _link("/auth/verify-email", token)
    await sender.send(EmailMessage(
        to=email,
        subject="Verify your email address",
        body=f"Welcome! Confirm your email address to finish setting up your account:\n\n{url}\n",
        action_url=url,
    ))


async def send_password_reset_email(sender: EmailSender, email: str, token: str) -> None:
    url = _link("/auth/reset-password", token)
    await sender.send(EmailMessage(
        to=email,
        subject="Reset your password",
        body=(
            "We received a request to reset your password. "
            f"If it was you, follow this link:\n\n{url}\n\n"
            "If not, you can ignore this email."
        ),
        action_url=url,
    ))
