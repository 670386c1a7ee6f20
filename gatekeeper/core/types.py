from dataclasses import dataclass, field
from typing import Any, Union

from starlette import status

from gatekeeper.core.constants import RejectionReason

JWTClaims = dict[str, Any]


@dataclass(frozen=True)
class Authenticated:
    """A bearer token was presented and resolved to an identity."""

    identity: Any
    claims: JWTClaims = field(default_factory=dict)


@dataclass(frozen=True)
class Anonymous:
    """No credentials were presented."""


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    detail: str
    status_code: int = status.HTTP_401_UNAUTHORIZED


AuthResult = Union[Authenticated, Anonymous, Rejected]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    key: str
    limit: int
    remaining: int
    window: int


@dataclass
class ResponseSignals:
    """
    Status and headers collected while a request passes the guard.

    The host copies these onto its transport response.
    """

    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
