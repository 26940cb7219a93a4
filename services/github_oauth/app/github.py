"""Client for the GitHub OAuth endpoints and REST API."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    """GitHub rejected a request or could not be reached."""


class GitHubAuthExpired(GitHubError):
    """GitHub answered 401 for a user token."""


class GitHubClient:
    """Talks to github.com on behalf of the gateway and its users.

    The client secret only ever travels in the server-to-server code exchange.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._api_url = settings.github_api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.github_timeout_seconds)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self._settings.github_client_id,
            "redirect_uri": self._settings.github_redirect_uri,
            "scope": self._settings.github_scopes,
            "state": state,
        }
        return f"{self._settings.github_authorize_url}?{urlencode(params, quote_via=quote)}"

    def _api_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "github-oauth-gateway",
        }

    async def exchange_code(self, code: str) -> str:
        """Trade an authorization code for a user access token."""

        data = {
            "client_id": self._settings.github_client_id,
            "client_secret": self._settings.github_client_secret,
            "code": code,
            "redirect_uri": self._settings.github_redirect_uri,
        }
        try:
            response = await self._client.post(
                self._settings.github_token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise GitHubError(f"Token exchange request failed: {exc}") from exc
        if response.status_code >= 400:
            raise GitHubError(f"Token exchange rejected with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise GitHubError("Token exchange returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise GitHubError("Token exchange returned an unexpected payload")
        # GitHub reports a bad or reused code as HTTP 200 with an ``error`` field.
        if payload.get("error"):
            raise GitHubError(f"Token exchange failed: {payload['error']}")
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise GitHubError("Token exchange response did not include an access token")
        return access_token

    async def fetch_login(self, token: str) -> str:
        """Return the login of the user owning ``token``."""

        data = await self._get_json("/user", token)
        login = data.get("login") if isinstance(data, dict) else None
        if not isinstance(login, str) or not login:
            raise GitHubError("GitHub user response did not include a login")
        return login

    async def list_repositories(self, owner: str, token: str) -> list[dict[str, Any]]:
        """List up to 100 repositories of ``owner``, private ones included when visible."""

        data = await self._get_json(
            f"/users/{quote(owner, safe='')}/repos",
            token,
            params={"type": "all", "per_page": 100},
        )
        if not isinstance(data, list):
            raise GitHubError("GitHub repository listing was not a JSON array")
        return [repo for repo in data if isinstance(repo, dict)]

    async def _get_json(
        self, path: str, token: str, params: dict[str, Any] | None = None
    ) -> Any:
        try:
            response = await self._client.get(
                f"{self._api_url}{path}", headers=self._api_headers(token), params=params
            )
        except httpx.HTTPError as exc:
            raise GitHubError(f"GitHub request to {path} failed: {exc}") from exc
        if response.status_code == 401:
            raise GitHubAuthExpired("GitHub rejected the access token")
        if response.status_code >= 400:
            raise GitHubError(f"GitHub request to {path} failed with HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubError(f"GitHub response for {path} was not JSON") from exc
