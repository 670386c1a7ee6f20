from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence, Union

from loguru import logger
from starlette import status
from starlette.requests import Request

from gatekeeper.core.constants import Headers, RejectionReason
from gatekeeper.core.exceptions import RequestValidationError
from gatekeeper.core.types import (
    Anonymous,
    Authenticated,
    AuthResult,
    RateLimitDecision,
    Rejected,
    ResponseSignals,
)
from gatekeeper.core.utils import TrustedProxies, get_client_ip, get_header
from gatekeeper.services.authenticator import JWTAuthenticator
from gatekeeper.services.cache.rate_limiter import RateLimiter
from gatekeeper.services.request_validator import JSON_CONTENT_TYPE, RequestValidator

BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass
class RequestContext:
    """
    Transport-neutral view of an inbound request.

    Steps read from it and record their results on it for the handler.
    """

    method: str
    path: str
    headers: Mapping[str, str]
    client_ip: str | None = None
    user_id: Any | None = None
    body: bytes | None = None
    auth_result: AuthResult | None = None
    rate_limit: RateLimitDecision | None = None

    @property
    def content_type(self) -> str | None:
        return get_header(self.headers, "Content-Type")

    @property
    def content_length(self) -> str | None:
        return get_header(self.headers, "Content-Length")

    @classmethod
    async def from_request(
        cls, request: Request, trusted_proxies: TrustedProxies | None = None
    ) -> "RequestContext":
        body = None
        media_type = RequestValidator.media_type(request.headers.get("Content-Type"))
        if request.method in BODY_METHODS and media_type == JSON_CONTENT_TYPE:
            body = await request.body()

        return cls(
            method=request.method,
            path=request.url.path,
            headers=request.headers,
            client_ip=get_client_ip(request, trusted_proxies),
            user_id=getattr(request.state, "user_id", None),
            body=body,
        )


@dataclass(frozen=True)
class Allowed:
    """The step let the request through."""


StepOutcome = Union[Allowed, Rejected]
GuardStep = Callable[[RequestContext, ResponseSignals], Awaitable[StepOutcome]]


class GuardPipeline:
    """
    Runs guard steps in order and stops at the first rejection.

    Example:
        ```python
        pipeline = GuardPipeline([
            rate_limit_step(limiter),
            request_validation_step(RequestValidator()),
            authentication_step(authenticator, protected_paths=["/api/v1/auth/me"]),
        ])
        outcome = await pipeline.run(context, signals)
        ```
    """

    def __init__(self, steps: Sequence[GuardStep]):
        self.steps = list(steps)

    async def run(self, context: RequestContext, signals: ResponseSignals) -> StepOutcome:
        for step in self.steps:
            outcome = await step(context, signals)
            if isinstance(outcome, Rejected):
                logger.debug(
                    f"{context.method} {context.path} rejected by guard: {outcome.reason}"
                )
                return outcome

        return Allowed()


def request_validation_step(validator: RequestValidator) -> GuardStep:
    """Content type, body size and JSON well-formedness. Rejects with 400."""

    async def validate_request(context: RequestContext, signals: ResponseSignals) -> StepOutcome:
        try:
            validator.validate(context.content_type, context.content_length, context.body)
        except RequestValidationError as e:
            signals.status_code = status.HTTP_400_BAD_REQUEST
            return Rejected(
                reason=RejectionReason.INVALID_REQUEST,
                detail=e.message,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        return Allowed()

    return validate_request


def rate_limit_step(limiter: RateLimiter) -> GuardStep:
    """
    Counts the request against the caller's quota. Rejects with 429.

    Runs before authentication, so the caller is identified by a user id the
    host already established or by network address.
    """

    async def limit_rate(context: RequestContext, signals: ResponseSignals) -> StepOutcome:
        decision = await limiter.check_request(context.user_id, context.client_ip, signals)
        context.rate_limit = decision

        if not decision.allowed:
            return Rejected(
                reason=RejectionReason.RATE_LIMIT_EXCEEDED,
                detail="Rate limit exceeded",
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            )

        return Allowed()

    return limit_rate


def authentication_step(
    authenticator: JWTAuthenticator,
    protected_paths: Iterable[str] = (),
) -> GuardStep:
    """
    Authenticates the bearer token, if any. Rejects with 401.

    Anonymous requests pass unless the path starts with one of
    ``protected_paths``.
    """
    protected = tuple(protected_paths)

    async def authenticate(context: RequestContext, signals: ResponseSignals) -> StepOutcome:
        result = await authenticator.authenticate(context.headers, signals)
        context.auth_result = result

        if isinstance(result, Rejected):
            return result

        if isinstance(result, Anonymous) and context.path.startswith(protected):
            signals.status_code = status.HTTP_401_UNAUTHORIZED
            signals.headers[Headers.WWW_AUTHENTICATE] = authenticator.challenge
            return Rejected(reason=RejectionReason.UNAUTHENTICATED, detail="Not authenticated")

        if isinstance(result, Authenticated):
            context.user_id = result.identity.id

        return Allowed()

    return authenticate
