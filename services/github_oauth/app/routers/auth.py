"""GitHub authorization: initiation, callback and logout."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from ..deps import Gateway, error_response, get_gateway
from ..flow import FlowError, is_safe_redirect_path
from ..ledger import is_wallet_address
from ..schemas import AuthorizationUrl
from ..state import PendingVerification, new_state_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

SUPPORTED_PROVIDERS = frozenset({"github"})


def _ensure_provider(provider: str) -> None:
    if provider.lower() not in SUPPORTED_PROVIDERS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unsupported provider")


@router.post("/logout")
async def logout(gateway: Gateway = Depends(get_gateway)) -> Response:
    response = JSONResponse({"status": "logged_out"})
    settings = gateway.settings
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return response


@router.get("/{provider}", response_model=AuthorizationUrl)
async def start_verification(
    provider: str,
    wallet: Optional[str] = Query(None),
    redirect: Optional[str] = Query(None),
    gateway: Gateway = Depends(get_gateway),
):
    _ensure_provider(provider)
    if not is_wallet_address(wallet):
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid wallet address")
    assert wallet is not None

    redirect_path = None
    if redirect:
        if is_safe_redirect_path(redirect):
            redirect_path = redirect
        else:
            logger.warning("Ignoring redirect target that is not a local path")

    store = gateway.store
    pruned = store.prune_older_than(gateway.settings.state_ttl_ms)
    if pruned:
        logger.info("Pruned %d expired pending verifications", pruned)
    state = new_state_token()
    store.put(
        PendingVerification(
            state=state,
            subject=wallet,
            timestamp_ms=gateway.flow.now(),
            redirect_path=redirect_path,
        )
    )
    return AuthorizationUrl(url=gateway.github.authorization_url(state))


@router.get("/{provider}/callback")
async def verification_callback(
    provider: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    gateway: Gateway = Depends(get_gateway),
) -> Response:
    _ensure_provider(provider)
    flow = gateway.flow
    try:
        outcome = await flow.run(code, state)
    except FlowError as exc:
        if exc.kind.redirects:
            return RedirectResponse(flow.failure_url(exc.kind), status_code=status.HTTP_302_FOUND)
        return PlainTextResponse(exc.message, status_code=status.HTTP_400_BAD_REQUEST)

    response = RedirectResponse(outcome.redirect_url, status_code=status.HTTP_302_FOUND)
    if outcome.session_value:
        settings = gateway.settings
        response.set_cookie(
            settings.session_cookie_name,
            outcome.session_value,
            max_age=settings.session_max_age_seconds,
            httponly=True,
            samesite="lax",
            secure=settings.is_production,
        )
    return response
