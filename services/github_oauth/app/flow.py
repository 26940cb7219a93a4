"""The GitHub callback as an explicit sequence of stages.

Each transition is its own method that either returns the next stage or
raises :class:`FlowError`, so every failure branch can be exercised alone::

    AWAITING_CODE -> EXCHANGING_TOKEN -> FETCHING_IDENTITY
        -> RECORDING_ON_LEDGER -> ISSUING_SESSION -> REDIRECTED

Any stage may end in ``ABORTED``. Side effects already committed (a consumed
state, a mined transaction) are not rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlencode

from libs.observability.metrics import record_verification

from .cipher import TokenCipher
from .config import Settings
from .github import GitHubClient, GitHubError
from .ledger import Ledger, LedgerError, normalize_handle, verification_hash
from .state import Clock, PendingVerification, StateStore, epoch_ms

logger = logging.getLogger(__name__)


class FlowStage(str, Enum):
    AWAITING_CODE = "awaiting_code"
    EXCHANGING_TOKEN = "exchanging_token"
    FETCHING_IDENTITY = "fetching_identity"
    RECORDING_ON_LEDGER = "recording_on_ledger"
    ISSUING_SESSION = "issuing_session"
    REDIRECTED = "redirected"
    ABORTED = "aborted"


class FlowErrorKind(str, Enum):
    VALIDATION = "validation"
    STATE = "state"
    GITHUB = "github"
    BLOCKCHAIN = "blockchain"

    @property
    def redirects(self) -> bool:
        """Upstream failures keep the browser in the frontend instead of a bare 400."""

        return self in (FlowErrorKind.GITHUB, FlowErrorKind.BLOCKCHAIN)


class FlowError(Exception):
    def __init__(self, stage: FlowStage, kind: FlowErrorKind, message: str) -> None:
        super().__init__(message)
        self.stage = stage
        self.kind = kind
        self.message = message


@dataclass
class FlowContext:
    code: Optional[str]
    state: Optional[str]
    stage: FlowStage = FlowStage.AWAITING_CODE
    pending: Optional[PendingVerification] = None
    access_token: Optional[str] = None
    handle: Optional[str] = None
    transaction: Optional[str] = None
    session_value: Optional[str] = None


@dataclass(frozen=True)
class FlowOutcome:
    redirect_url: str
    session_value: Optional[str]
    handle: str
    subject: str


def is_safe_redirect_path(path: Optional[str]) -> bool:
    """Only same-site absolute paths such as ``/done`` are accepted."""

    if not path or not path.startswith("/") or path.startswith("//"):
        return False
    return "\\" not in path and not any(ch.isspace() for ch in path)


class VerificationFlow:
    """Drives one GitHub callback from code to session cookie."""

    def __init__(
        self,
        store: StateStore,
        github: GitHubClient,
        ledger: Ledger,
        cipher: TokenCipher,
        settings: Settings,
        *,
        ephemeral_key: bool = False,
        clock: Clock = epoch_ms,
    ) -> None:
        self._store = store
        self._github = github
        self._ledger = ledger
        self._cipher = cipher
        self._settings = settings
        self._ephemeral_key = ephemeral_key
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    def failure_url(self, kind: FlowErrorKind) -> str:
        return f"{self._settings.frontend_base}/verification-failed?{urlencode({'error': kind.value})}"

    def accept_callback(self, ctx: FlowContext) -> FlowStage:
        if not ctx.code or not ctx.state:
            raise FlowError(
                ctx.stage, FlowErrorKind.VALIDATION, "Missing code or state parameter"
            )
        pending = self._store.take_if_valid(ctx.state)
        if pending is None:
            raise FlowError(ctx.stage, FlowErrorKind.STATE, "Invalid state parameter")
        ctx.pending = pending
        return FlowStage.EXCHANGING_TOKEN

    async def exchange_token(self, ctx: FlowContext) -> FlowStage:
        assert ctx.code is not None
        try:
            ctx.access_token = await self._github.exchange_code(ctx.code)
        except GitHubError as exc:
            logger.warning("GitHub code exchange failed: %s", exc)
            raise FlowError(ctx.stage, FlowErrorKind.GITHUB, str(exc)) from exc
        return FlowStage.FETCHING_IDENTITY

    async def fetch_identity(self, ctx: FlowContext) -> FlowStage:
        assert ctx.access_token is not None
        try:
            login = await self._github.fetch_login(ctx.access_token)
        except GitHubError as exc:
            logger.warning("GitHub identity lookup failed: %s", exc)
            raise FlowError(ctx.stage, FlowErrorKind.GITHUB, str(exc)) from exc
        ctx.handle = normalize_handle(login)
        return FlowStage.RECORDING_ON_LEDGER

    async def record_on_ledger(self, ctx: FlowContext) -> FlowStage:
        assert ctx.pending is not None and ctx.handle is not None
        subject = ctx.pending.subject
        if not self._ledger.write_enabled:
            logger.info(
                "[DEV MODE] Would verify wallet %s with GitHub username %s", subject, ctx.handle
            )
            return FlowStage.ISSUING_SESSION

        proof = verification_hash(subject, ctx.handle, self._clock())
        try:
            ctx.transaction = await self._ledger.record_verification(subject, ctx.handle, proof)
        except LedgerError as exc:
            logger.error("Blockchain verification failed for %s: %s", subject, exc)
            raise FlowError(ctx.stage, FlowErrorKind.BLOCKCHAIN, str(exc)) from exc
        return FlowStage.ISSUING_SESSION

    def issue_session(self, ctx: FlowContext) -> FlowStage:
        assert ctx.access_token is not None
        if self._ephemeral_key:
            logger.warning("Issuing a session under an ephemeral key; it ends with this process")
        ctx.session_value = self._cipher.encrypt(ctx.access_token)
        if ctx.session_value is None:
            logger.warning("Session cookie not issued for %s: token encryption failed", ctx.handle)
        return FlowStage.REDIRECTED

    def redirect_target(self, ctx: FlowContext) -> str:
        assert ctx.pending is not None and ctx.handle is not None
        base = self._settings.frontend_base
        if ctx.pending.redirect_path:
            return f"{base}{ctx.pending.redirect_path}"
        return f"{base}/verification-success?{urlencode({'username': ctx.handle})}"

    async def run(self, code: Optional[str], state: Optional[str]) -> FlowOutcome:
        ctx = FlowContext(code=code, state=state)
        try:
            ctx.stage = self.accept_callback(ctx)
            ctx.stage = await self.exchange_token(ctx)
            ctx.stage = await self.fetch_identity(ctx)
            ctx.stage = await self.record_on_ledger(ctx)
            ctx.stage = self.issue_session(ctx)
        except FlowError as exc:
            ctx.stage = FlowStage.ABORTED
            record_verification(exc.kind.value)
            raise

        assert ctx.pending is not None and ctx.handle is not None
        record_verification("success")
        logger.info("Wallet %s linked to GitHub user %s", ctx.pending.subject, ctx.handle)
        return FlowOutcome(
            redirect_url=self.redirect_target(ctx),
            session_value=ctx.session_value,
            handle=ctx.handle,
            subject=ctx.pending.subject,
        )
