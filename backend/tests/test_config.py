"""
Tests for settings and the admission config derived from them.
"""

from app.core.config import AdmissionConfig, Settings, SignUpMode


def test_production_uses_longer_retry_delays():
    production = Settings(ENVIRONMENT="production", DB_RETRY_BASE_DELAY_MS=None)
    development = Settings(ENVIRONMENT="development", DB_RETRY_BASE_DELAY_MS=None)
    assert production.retry_base_delay_ms > development.retry_base_delay_ms


def test_explicit_retry_delay_wins():
    settings = Settings(ENVIRONMENT="production", DB_RETRY_BASE_DELAY_MS=5)
    assert AdmissionConfig.from_settings(settings).base_delay_ms == 5


def test_admission_config_from_settings():
    settings = Settings(SIGN_UP_MODE="BOTH_SIGN_UP", DB_RETRY_MAX_ATTEMPTS=7)
    config = AdmissionConfig.from_settings(settings)
    assert config.mode is SignUpMode.BOTH
    assert config.max_attempts == 7


def test_mode_capabilities():
    assert SignUpMode.OPEN.allows_open_sign_up and not SignUpMode.OPEN.allows_waitlist
    assert SignUpMode.GATED.requires_code and not SignUpMode.GATED.allows_waitlist
    assert SignUpMode.INTEREST.allows_waitlist and not SignUpMode.INTEREST.requires_code
    assert SignUpMode.BOTH.requires_code and SignUpMode.BOTH.allows_waitlist
    none = SignUpMode.NONE
    assert not (none.allows_open_sign_up or none.requires_code or none.allows_waitlist)


def test_statement_timeout_reaches_admission_config():
    assert AdmissionConfig.from_settings(Settings(DB_STATEMENT_TIMEOUT_SECONDS=3)).attempt_timeout_seconds == 3
    assert AdmissionConfig.from_settings(Settings(DB_STATEMENT_TIMEOUT_SECONDS=0)).attempt_timeout_seconds is None
