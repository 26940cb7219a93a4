"""Environment configuration for the GitHub OAuth gateway."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.env import is_production_environment

logger = logging.getLogger(__name__)

SESSION_KEY_BYTES = 32


class ConfigurationError(RuntimeError):
    """Raised when the gateway cannot start with the provided settings."""


class Settings(BaseSettings):
    """Settings loaded from environment variables (and an optional ``.env``)."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    github_client_id: str = Field("", description="GitHub OAuth application client id")
    github_client_secret: str = Field("", description="GitHub OAuth client secret", repr=False)
    github_redirect_uri: str = Field(
        "http://localhost:3001/api/auth/github/callback",
        description="Callback registered on the GitHub OAuth application",
    )
    github_scopes: str = Field("read:user repo", description="Space separated OAuth scopes")
    github_authorize_url: str = "https://github.com/login/oauth/authorize"
    github_token_url: str = "https://github.com/login/oauth/access_token"
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 10.0

    encryption_key: str = Field(
        "", description="64 hex characters used to encrypt session cookies", repr=False
    )
    allow_insecure_session_key: bool = Field(
        False,
        description="Local development only: generate a throwaway key when ENCRYPTION_KEY is unset",
    )

    rpc_url: str = Field("https://sepolia.base.org", description="Ledger JSON-RPC endpoint")
    contract_address: str = Field("", description="Verification contract address")
    private_key: str = Field("", description="Key signing ledger writes", repr=False)
    ledger_confirmation_timeout_seconds: float = Field(120.0, gt=0)

    frontend_url: str = "http://localhost:3000"
    environment: str = "dev"

    state_ttl_seconds: int = Field(3600, gt=0)
    session_cookie_name: str = "session_token"
    session_max_age_seconds: int = Field(3600, gt=0)
    port: int = 3001

    @property
    def is_production(self) -> bool:
        return is_production_environment(self.environment)

    @property
    def github_configured(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)

    @property
    def ledger_write_enabled(self) -> bool:
        return bool(self.private_key and self.contract_address)

    @property
    def frontend_base(self) -> str:
        return self.frontend_url.rstrip("/")

    @property
    def state_ttl_ms(self) -> int:
        return self.state_ttl_seconds * 1000


@dataclass(frozen=True)
class SessionKey:
    """The symmetric key protecting session cookies."""

    key: bytes
    ephemeral: bool = False


def resolve_session_key(settings: Settings) -> SessionKey:
    """Return the configured cookie key or fail fast.

    A missing key is only tolerated when ``ALLOW_INSECURE_SESSION_KEY`` is set,
    in which case a random key lives for the lifetime of the process.
    """

    raw = settings.encryption_key.strip()
    if raw:
        try:
            key = bytes.fromhex(raw)
        except ValueError:
            raise ConfigurationError("ENCRYPTION_KEY must be hexadecimal") from None
        if len(key) != SESSION_KEY_BYTES:
            raise ConfigurationError(
                f"ENCRYPTION_KEY must be {SESSION_KEY_BYTES * 2} hex characters, got {len(raw)}"
            )
        return SessionKey(key=key)

    if not settings.allow_insecure_session_key:
        raise ConfigurationError(
            "ENCRYPTION_KEY is not set. Provide a 64 hex character key, or set "
            "ALLOW_INSECURE_SESSION_KEY=1 for local development."
        )
    if settings.is_production:
        logger.error(
            "ALLOW_INSECURE_SESSION_KEY is enabled in environment %r; sessions use a throwaway key",
            settings.environment,
        )
    logger.warning(
        "ENCRYPTION_KEY is not set; using an ephemeral session key. "
        "Sessions will not survive a process restart."
    )
    return SessionKey(key=os.urandom(SESSION_KEY_BYTES), ephemeral=True)


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""

    return Settings()
