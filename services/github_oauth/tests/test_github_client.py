"""GitHub client error mapping."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from services.github_oauth.app.github import GitHubAuthExpired, GitHubClient, GitHubError


def _client(settings, handler) -> GitHubClient:
    return GitHubClient(settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_authorization_url_encodes_parameters(settings) -> None:
    github = GitHubClient(settings, client=httpx.AsyncClient())

    url = urlparse(github.authorization_url("abc123"))

    assert url.netloc == "github.com"
    assert "scope=read%3Auser%20repo" in url.query
    assert parse_qs(url.query)["state"] == ["abc123"]
    assert "client-secret" not in url.query


@pytest.mark.asyncio
async def test_exchange_posts_secret_and_returns_token(settings) -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["accept"] = request.headers["Accept"]
        seen["form"] = dict(httpx.QueryParams(request.content.decode()))
        return httpx.Response(200, json={"access_token": "tok123"})

    token = await _client(settings, handler).exchange_code("abc")

    assert token == "tok123"
    assert seen["accept"] == "application/json"
    assert seen["form"]["client_secret"] == "client-secret"
    assert seen["form"]["code"] == "abc"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"error": "bad_verification_code"}),
        httpx.Response(200, json={"token_type": "bearer"}),
        httpx.Response(200, json=["not", "a", "dict"]),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(500, text="boom"),
    ],
)
async def test_exchange_failures_raise(settings, response: httpx.Response) -> None:
    with pytest.raises(GitHubError):
        await _client(settings, lambda request: response).exchange_code("abc")


@pytest.mark.asyncio
async def test_transport_error_is_a_github_error(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(GitHubError):
        await _client(settings, handler).fetch_login("tok123")


@pytest.mark.asyncio
async def test_unauthorized_maps_to_expired(settings) -> None:
    github = _client(settings, lambda request: httpx.Response(401, json={}))

    with pytest.raises(GitHubAuthExpired):
        await github.list_repositories("octocat", "stale")


@pytest.mark.asyncio
async def test_repository_listing_requests_all_repos(settings) -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json=[{"id": 1}, "junk"])

    repos = await _client(settings, handler).list_repositories("octocat", "tok123")

    assert repos == [{"id": 1}]
    assert seen["url"].path == "/users/octocat/repos"
    assert seen["url"].params["type"] == "all"
    assert seen["url"].params["per_page"] == "100"
    assert seen["auth"] == "Bearer tok123"


@pytest.mark.asyncio
async def test_login_missing_from_user_payload(settings) -> None:
    github = _client(settings, lambda request: httpx.Response(200, json={"id": 1}))

    with pytest.raises(GitHubError):
        await github.fetch_login("tok123")
