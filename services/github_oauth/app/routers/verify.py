"""Read-only views of the wallet/GitHub associations on the ledger."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from ..deps import Gateway, error_response, get_gateway
from ..ledger import LedgerError, is_wallet_address, normalize_handle
from ..schemas import HandleLookup, VerificationStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verify", tags=["verification"])


@router.get("/status/{subject}", response_model=VerificationStatus)
async def verification_status(subject: str, gateway: Gateway = Depends(get_gateway)):
    if not is_wallet_address(subject):
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid wallet address")
    try:
        record = await gateway.ledger.wallet_info(subject)
    except LedgerError as exc:
        logger.error("Error checking verification status of %s: %s", subject, exc)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to check verification status"
        )
    return VerificationStatus(
        handle=normalize_handle(record.handle),
        verified=record.verified,
        verification_timestamp=str(record.verification_timestamp),
        wallet_address=subject,
    )


@router.get("/handle/{handle}", response_model=HandleLookup)
async def wallet_for_handle(handle: str, gateway: Gateway = Depends(get_gateway)):
    normalized = normalize_handle(handle)
    if not normalized:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid GitHub username")
    ledger = gateway.ledger
    try:
        wallet = await ledger.wallet_for_handle(normalized)
        verified = False
        if wallet:
            record = await ledger.wallet_info(wallet)
            verified = record.verified and normalize_handle(record.handle) == normalized
    except LedgerError as exc:
        logger.error("Error looking up wallet for %s: %s", normalized, exc)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to check verification status"
        )
    return HandleLookup(handle=normalized, wallet_address=wallet, verified=verified)
