"""Repository summaries fetched from GitHub with the caller's own token."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ..credentials import resolve_credential, session_resolvers
from ..deps import Gateway, error_response, get_gateway
from ..github import GitHubAuthExpired, GitHubError
from ..repositories import summarize_repositories
from ..schemas import RepositorySummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resource", tags=["resources"])


async def _summary(gateway: Gateway, owner: str, token: str):
    try:
        repos = await gateway.github.list_repositories(owner, token)
    except GitHubAuthExpired:
        return error_response(status.HTTP_401_UNAUTHORIZED, "Authentication expired")
    except GitHubError as exc:
        logger.error("Error fetching GitHub data for %s: %s", owner, exc)
        return error_response(status.HTTP_502_BAD_GATEWAY, "Failed to fetch GitHub data")
    return RepositorySummary.model_validate(summarize_repositories(owner, repos))


@router.get("/{owner}/authenticated", response_model=RepositorySummary)
async def authenticated_summary(
    owner: str,
    request: Request,
    gateway: Gateway = Depends(get_gateway),
):
    resolution = resolve_credential(
        request, session_resolvers(gateway.cipher, gateway.settings.session_cookie_name)
    )
    if resolution.token is None:
        return error_response(
            status.HTTP_401_UNAUTHORIZED,
            "No valid credential",
            channels=resolution.describe(),
        )
    logger.debug("Resolved GitHub credential from %s", resolution.channel)
    return await _summary(gateway, owner, resolution.token)


@router.get("/{owner}", response_model=RepositorySummary)
async def legacy_summary(
    owner: str,
    token: Optional[str] = Query(None),
    gateway: Gateway = Depends(get_gateway),
):
    if not token:
        return error_response(status.HTTP_400_BAD_REQUEST, "Access token required")
    return await _summary(gateway, owner, token)
