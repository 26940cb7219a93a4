from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx
import pytest

from services.github_oauth.app.config import Settings
from services.github_oauth.app.ledger import LedgerError, LedgerRecord
from services.github_oauth.app.main import create_app
from services.github_oauth.app.state import InMemoryStateStore

TEST_KEY_HEX = "0f" * 32
WALLET = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"
FRONTEND = "http://localhost:3000"

PUBLIC_REPO = {
    "id": 7,
    "name": "hello-world",
    "private": False,
    "stargazers_count": 3,
    "forks_count": 1,
    "language": "Python",
    "created_at": "2020-01-01T00:00:00Z",
    "updated_at": "2024-01-01T00:00:00Z",
    "size": 120,
}
PRIVATE_REPO = {
    "id": 42,
    "name": "secret-repo",
    "private": True,
    "stargazers_count": 5,
    "forks_count": 0,
    "language": "Rust",
    "created_at": "2021-01-01T00:00:00Z",
    "updated_at": "2024-02-01T00:00:00Z",
    "size": 64,
}


class FakeClock:
    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@dataclass
class GitHubState:
    """Fake github.com: records which tokens reached the REST API."""

    tokens: dict[str, str] = field(default_factory=lambda: {"validcode": "tok123"})
    logins: dict[str, str] = field(default_factory=lambda: {"tok123": "Octocat"})
    repos: list[dict] = field(default_factory=lambda: [PUBLIC_REPO, PRIVATE_REPO])
    expired_tokens: set[str] = field(default_factory=set)
    exchanged_codes: list[str] = field(default_factory=list)
    api_tokens: list[str] = field(default_factory=list)
    fail_exchange: bool = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "github.com" and request.url.path == "/login/oauth/access_token":
            if self.fail_exchange:
                return httpx.Response(503, text="unavailable")
            form = dict(httpx.QueryParams(request.content.decode()))
            code = form.get("code", "")
            self.exchanged_codes.append(code)
            if form.get("client_secret") != "client-secret":
                return httpx.Response(200, json={"error": "incorrect_client_credentials"})
            token = self.tokens.get(code)
            if token is None:
                return httpx.Response(200, json={"error": "bad_verification_code"})
            return httpx.Response(
                200, json={"access_token": token, "token_type": "bearer", "scope": "repo"}
            )

        if request.url.host != "api.github.com":
            return httpx.Response(404)
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme != "Bearer":
            return httpx.Response(401, json={"message": "Requires authentication"})
        self.api_tokens.append(token)
        if token in self.expired_tokens:
            return httpx.Response(401, json={"message": "Bad credentials"})

        if request.url.path == "/user":
            login = self.logins.get(token)
            if login is None:
                return httpx.Response(401, json={"message": "Bad credentials"})
            return httpx.Response(200, json={"login": login, "id": 1})
        if request.url.path.startswith("/users/") and request.url.path.endswith("/repos"):
            return httpx.Response(200, json=self.repos)
        return httpx.Response(404)


class FakeLedger:
    """In-memory stand-in for the verification contract."""

    def __init__(self, *, write_enabled: bool = True, fail: bool = False) -> None:
        self.write_enabled = write_enabled
        self.fail = fail
        self.writes: list[tuple[str, str, str]] = []
        self._by_wallet: dict[str, LedgerRecord] = {}
        self._by_handle: dict[str, str] = {}

    async def record_verification(self, subject: str, handle: str, proof_hash: str) -> str:
        if self.fail:
            raise LedgerError("Transaction not confirmed within 1s")
        self.writes.append((subject, handle, proof_hash))
        self._by_wallet[subject.lower()] = LedgerRecord(
            subject=subject, handle=handle, verified=True, verification_timestamp=1_700_000_000
        )
        self._by_handle[handle] = subject
        return "0x" + "ab" * 32

    async def wallet_info(self, subject: str) -> LedgerRecord:
        return self._by_wallet.get(
            subject.lower(), LedgerRecord(subject=subject, handle="", verified=False)
        )

    async def wallet_for_handle(self, handle: str) -> Optional[str]:
        return self._by_handle.get(handle)


def make_settings(**overrides) -> Settings:
    values = {
        "github_client_id": "client-id",
        "github_client_secret": "client-secret",
        "encryption_key": TEST_KEY_HEX,
        "frontend_url": FRONTEND,
        "environment": "test",
        "contract_address": "",
        "private_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def github_state() -> GitHubState:
    return GitHubState()


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryStateStore:
    return InMemoryStateStore(clock=clock)


@pytest.fixture()
def app(settings, store, ledger, github_state, clock):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(github_state.handler))
    return create_app(
        settings, store=store, ledger=ledger, http_client=http_client, clock=clock
    )
