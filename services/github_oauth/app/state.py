"""Single-use OAuth state tokens bound to the wallet asking for verification."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

DEFAULT_STATE_TTL_MS = 3_600_000

Clock = Callable[[], int]


def epoch_ms() -> int:
    return int(time.time() * 1000)


def new_state_token() -> str:
    """16 random bytes, hex encoded."""

    return secrets.token_hex(16)


@dataclass(frozen=True)
class PendingVerification:
    """A verification started by the initiator and awaiting its callback."""

    state: str
    subject: str
    timestamp_ms: int
    redirect_path: Optional[str] = None

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.timestamp_ms


class StateStore(Protocol):
    """Storage for pending verifications, keyed by state token."""

    def put(self, entry: PendingVerification) -> None: ...

    def take_if_valid(self, state: str) -> Optional[PendingVerification]: ...

    def prune_older_than(self, ttl_ms: int) -> int: ...


class InMemoryStateStore:
    """Process-local store.

    All methods are synchronous, so under asyncio they never interleave with
    each other. A multi-threaded or multi-instance deployment needs a store
    with its own locking or an external TTL cache instead.
    """

    def __init__(self, ttl_ms: int = DEFAULT_STATE_TTL_MS, clock: Clock = epoch_ms) -> None:
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entries: Dict[str, PendingVerification] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, state: object) -> bool:
        return state in self._entries

    def now(self) -> int:
        return self._clock()

    def put(self, entry: PendingVerification) -> None:
        self._entries[entry.state] = entry

    def take_if_valid(self, state: str) -> Optional[PendingVerification]:
        """Remove and return the entry for ``state`` unless it has expired."""

        entry = self._entries.pop(state, None)
        if entry is None:
            return None
        if entry.age_ms(self._clock()) > self._ttl_ms:
            return None
        return entry

    def prune_older_than(self, ttl_ms: int) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.age_ms(now) > ttl_ms]
        for key in expired:
            del self._entries[key]
        return len(expired)
