"""Dependency wiring shared by the routers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from .cipher import TokenCipher
from .config import Settings
from .flow import VerificationFlow
from .github import GitHubClient
from .ledger import Ledger
from .state import StateStore


@dataclass
class Gateway:
    """Everything a request handler needs, built once by ``create_app``."""

    settings: Settings
    store: StateStore
    github: GitHubClient
    ledger: Ledger
    cipher: TokenCipher
    flow: VerificationFlow
    ephemeral_key: bool = False


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})
