"""Resolution of the caller's GitHub token from cookie, query or header.

Resolvers run in a fixed order and the first one yielding a token wins; the
remaining channels are never looked at.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple

from starlette.requests import HTTPConnection

from .cipher import TokenCipher


class ChannelStatus(str, Enum):
    ABSENT = "absent"
    INVALID = "invalid"
    USED = "used"


ResolverResult = Tuple[ChannelStatus, Optional[str]]
Resolver = Callable[[HTTPConnection], ResolverResult]


@dataclass
class CredentialResolution:
    token: Optional[str] = None
    channel: Optional[str] = None
    channels: Dict[str, ChannelStatus] = field(default_factory=dict)

    def describe(self) -> Dict[str, str]:
        return {name: status.value for name, status in self.channels.items()}


def cookie_resolver(cipher: TokenCipher, cookie_name: str) -> Resolver:
    def resolve(conn: HTTPConnection) -> ResolverResult:
        packed = conn.cookies.get(cookie_name)
        if packed is None:
            return ChannelStatus.ABSENT, None
        token = cipher.decrypt(packed)
        if not token:
            return ChannelStatus.INVALID, None
        return ChannelStatus.USED, token

    return resolve


def query_resolver(param: str = "token") -> Resolver:
    def resolve(conn: HTTPConnection) -> ResolverResult:
        if param not in conn.query_params:
            return ChannelStatus.ABSENT, None
        token = conn.query_params.get(param, "").strip()
        if not token:
            return ChannelStatus.INVALID, None
        return ChannelStatus.USED, token

    return resolve


def bearer_resolver(conn: HTTPConnection) -> ResolverResult:
    authorization = conn.headers.get("Authorization")
    if authorization is None:
        return ChannelStatus.ABSENT, None
    scheme, _, credentials = authorization.partition(" ")
    credentials = credentials.strip()
    if scheme.lower() != "bearer" or not credentials:
        return ChannelStatus.INVALID, None
    return ChannelStatus.USED, credentials


def resolve_credential(
    conn: HTTPConnection, resolvers: Sequence[Tuple[str, Resolver]]
) -> CredentialResolution:
    result = CredentialResolution()
    for channel, resolver in resolvers:
        status, token = resolver(conn)
        result.channels[channel] = status
        if token:
            result.token = token
            result.channel = channel
            return result
    return result


def session_resolvers(cipher: TokenCipher, cookie_name: str) -> list[Tuple[str, Resolver]]:
    """Cookie, then ``?token=``, then ``Authorization: Bearer``."""

    return [
        ("cookie", cookie_resolver(cipher, cookie_name)),
        ("query", query_resolver("token")),
        ("header", bearer_resolver),
    ]
