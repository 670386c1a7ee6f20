from typing import Annotated, Any

from fastapi import Depends, Request, Response
from loguru import logger

from gatekeeper.api.v1.deps.auth import get_optional_identity
from gatekeeper.core.config import settings
from gatekeeper.core.constants import RateLimitScope
from gatekeeper.core.exceptions.http_exceptions import TooManyRequestsException
from gatekeeper.core.utils import get_client_ip
from gatekeeper.services.cache.rate_limiter import RateLimiter, validate_limits


def _limit_dependency(limit: int, window: int, scope: str, use_user_id: bool):
    validate_limits(limit, window)

    async def check_limit(request: Request, response: Response, user_id: Any | None) -> None:
        limiter = RateLimiter(
            store=request.app.state.counter_store,
            max_requests=limit,
            window=window,
            scope=scope,
        )
        ip = get_client_ip(request, getattr(request.app.state, "trusted_proxies", None))

        decision = await limiter.check_request(user_id, ip, signals=response)
        request.state.rate_limit = decision

        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for endpoint. IP: {ip}, Key: {decision.key}")
            raise TooManyRequestsException(
                detail="Rate limit exceeded. Please slow down your requests.",
                headers=RateLimiter.headers_for(decision),
            )

    if use_user_id:

        async def user_limiter(
            request: Request,
            response: Response,
            identity: Annotated[Any | None, Depends(get_optional_identity)],
        ) -> None:
            await check_limit(request, response, identity.id if identity is not None else None)

        return user_limiter

    async def ip_limiter(request: Request, response: Response) -> None:
        await check_limit(request, response, None)

    return ip_limiter


# Strict, IP-based limit for the token endpoints
rate_limit_auth = _limit_dependency(
    limit=settings.rate_limit_strict,
    window=settings.rate_limit_window,
    scope=RateLimitScope.AUTH,
    use_user_id=False,
)

# Per-user limit for authenticated endpoints, so users behind one address
# do not share a quota
rate_limit_user = _limit_dependency(
    limit=settings.rate_limit_user,
    window=settings.rate_limit_window,
    scope=RateLimitScope.USER,
    use_user_id=True,
)


def create_rate_limit(
    limit: int, window: int = 60, scope: str = "custom", use_user_id: bool = False
):
    """
    Factory function to create endpoint-specific rate limits.

    Args:
        limit: Maximum number of requests allowed in the time window
        window: Time window in seconds (default: 60)
        scope: Custom scope name, prefixed with "rate_limit:"
        use_user_id: Key by the authenticated user when there is one, else by IP

    Returns:
        Async dependency function that can be used with Depends()

    Raises:
        RateLimitConfigurationError: If limit or window is not positive
        ValueError: If the scope collides with a registered one

    Example:
        ```python
        export_limit = create_rate_limit(limit=5, window=300, scope="export")

        @router.post("/export", dependencies=[Depends(export_limit)])
        async def export_data(...):
            pass
        ```
    """
    full_scope = f"{RateLimitScope.DEFAULT}:{scope}"
    RateLimitScope.validate_scope(full_scope)

    return _limit_dependency(limit, window, full_scope, use_user_id)
