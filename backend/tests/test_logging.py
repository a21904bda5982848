"""
Tests for log processing and what the logging email sender writes.
"""

import pytest
from structlog.testing import capture_logs

from app.core.logging import _redact_secrets
from app.services.email_service import (
    LoggingEmailSender,
    send_password_reset_email,
    send_verification_email,
    strip_token,
)

SECRET = "eyJhbGciOiJIUzI1NiJ9.c2VjcmV0.c2ln"


def test_credentials_are_masked():
    event = _redact_secrets(None, "info", {
        "event": "user_signed_in",
        "email": "test@example.com",
        "password": "hunter22",
        "token": "eyJ...",
    })

    assert event["password"] == "[redacted]"
    assert event["token"] == "[redacted]"
    assert event["email"] == "test@example.com"


def test_tokens_inside_links_are_masked():
    event = _redact_secrets(None, "info", {
        "event": "email_sent",
        "action_url": f"http://localhost:8000/auth/reset-password?token={SECRET}&next=/home",
    })

    assert SECRET not in event["action_url"]
    assert event["action_url"].endswith("?token=[redacted]&next=/home")


def test_strip_token_keeps_the_rest_of_the_link():
    link = strip_token(f"http://localhost:8000/auth/verify-email?token={SECRET}")

    assert SECRET not in link
    assert link.startswith("http://localhost:8000/auth/verify-email?token=")


@pytest.mark.asyncio
@pytest.mark.parametrize("send", [send_verification_email, send_password_reset_email])
async def test_logging_sender_never_logs_the_token(send):
    with capture_logs() as logs:
        await send(LoggingEmailSender(), "test@example.com", SECRET)

    assert [entry["event"] for entry in logs] == ["email_sent"]
    assert SECRET not in repr(logs)
    assert logs[0]["to"] == "test@example.com"
