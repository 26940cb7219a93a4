"""Session key resolution and startup guards."""

from __future__ import annotations

import logging

import pytest

from services.github_oauth.app.config import ConfigurationError, resolve_session_key
from services.github_oauth.app.main import create_app

from .conftest import TEST_KEY_HEX, make_settings


def test_configured_key_is_used_verbatim() -> None:
    key = resolve_session_key(make_settings(encryption_key=TEST_KEY_HEX.upper()))

    assert key.key == bytes.fromhex(TEST_KEY_HEX)
    assert key.ephemeral is False


@pytest.mark.parametrize("raw", ["zz" * 32, "0f" * 16, "0f" * 33])
def test_malformed_key_fails_fast(raw: str) -> None:
    with pytest.raises(ConfigurationError):
        resolve_session_key(make_settings(encryption_key=raw))


def test_missing_key_fails_without_opt_in() -> None:
    with pytest.raises(ConfigurationError, match="ENCRYPTION_KEY"):
        resolve_session_key(make_settings(encryption_key=""))


def test_opt_in_generates_an_ephemeral_key(caplog: pytest.LogCaptureFixture) -> None:
    settings = make_settings(encryption_key="", allow_insecure_session_key=True)

    with caplog.at_level(logging.WARNING):
        first = resolve_session_key(settings)
        second = resolve_session_key(settings)

    assert first.ephemeral is True
    assert len(first.key) == 32
    assert first.key != second.key
    assert "ephemeral" in caplog.text


def test_app_refuses_to_start_without_a_key(store, ledger) -> None:
    with pytest.raises(ConfigurationError):
        create_app(make_settings(encryption_key=""), store=store, ledger=ledger)


def test_settings_derive_flags() -> None:
    settings = make_settings(
        environment="Production",
        frontend_url="https://app.example/",
        contract_address="0x" + "1" * 40,
        private_key="",
    )

    assert settings.is_production is True
    assert settings.frontend_base == "https://app.example"
    assert settings.ledger_write_enabled is False
    assert settings.github_configured is True
    assert settings.state_ttl_ms == 3_600_000
