from typing import Any

from loguru import logger
from starlette import status

from gatekeeper.core.constants import Headers, RateLimitScope
from gatekeeper.core.exceptions import CounterStoreError, RateLimitConfigurationError
from gatekeeper.core.types import RateLimitDecision
from gatekeeper.services.cache.counter_store import CounterStore


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_limits(max_requests: int, window: int) -> None:
    """
    Raises:
        RateLimitConfigurationError: If max_requests or window is not a positive integer
    """
    if not _is_positive_int(max_requests):
        raise RateLimitConfigurationError(
            f"Rate limit must be a positive integer, got {max_requests}"
        )
    if not _is_positive_int(window):
        raise RateLimitConfigurationError(
            f"Rate limit window must be a positive integer, got {window}"
        )


class RateLimiter:
    """
    Per-caller request counter over a CounterStore.

    Each accepted request increments ``{scope}:{identifier}`` and resets its
    TTL to the full window, so the window slides forward with every accepted
    call. Rejected requests leave the counter and its TTL untouched; the key
    expires ``window`` seconds after the last accepted request.

    Example:
        ```python
        limiter = RateLimiter(store, max_requests=3, window=60)

        decision = await limiter.check("ip:192.168.1.1")
        # allowed=True, remaining=2
        ```
    """

    def __init__(
        self,
        store: CounterStore,
        max_requests: int = 60,
        window: int = 60,
        scope: str = RateLimitScope.DEFAULT,
        fail_open: bool = True,
    ):
        """
        Args:
            store: Counter backend
            max_requests: Requests allowed per window
            window: Window length in seconds
            scope: Key prefix distinguishing limiter instances
            fail_open: Allow requests when the store is unreachable

        Raises:
            RateLimitConfigurationError: If max_requests or window is not positive
        """
        validate_limits(max_requests, window)

        self.store = store
        self.max_requests = max_requests
        self.window = window
        self.scope = scope
        self.fail_open = fail_open

    @staticmethod
    def identifier_for(user_id: Any | None, client_ip: str | None) -> str:
        """
        Authenticated user id if present, else the caller's network address
        """
        if user_id is not None:
            return f"user:{user_id}"

        return f"ip:{client_ip or 'unknown'}"

    def key_for(self, identifier: str) -> str:
        return f"{self.scope}:{identifier}"

    async def check(self, identifier: str) -> RateLimitDecision:
        """
        Count one request for an identifier

        Args:
            identifier: "user:{id}" or "ip:{address}"

        Returns:
            RateLimitDecision with the remaining quota
        """
        key = self.key_for(identifier)

        try:
            count = await self.store.increment_if_below(key, self.max_requests, self.window)
        except CounterStoreError as e:
            if not self.fail_open:
                raise

            logger.warning(f"Rate limit check failed for key {key}: {e}. Allowing request.")
            return self._decision(key, allowed=True, remaining=self.max_requests)

        if count is None:
            logger.warning(f"Rate limit exceeded. Key: {key}, Limit: {self.max_requests}")
            return self._decision(key, allowed=False, remaining=0)

        return self._decision(key, allowed=True, remaining=max(0, self.max_requests - count))

    async def check_request(
        self,
        user_id: Any | None,
        client_ip: str | None,
        signals: Any = None,
    ) -> RateLimitDecision:
        """
        Check the limit for a request and write usage signals

        Args:
            user_id: Authenticated user id, if already known
            client_ip: Caller network address
            signals: Optional sink with ``status_code`` and ``headers``

        Returns:
            RateLimitDecision. On rejection the sink also receives status 429.
        """
        decision = await self.check(self.identifier_for(user_id, client_ip))

        if signals is not None:
            signals.headers.update(self.headers_for(decision))
            if not decision.allowed:
                signals.status_code = status.HTTP_429_TOO_MANY_REQUESTS

        return decision

    async def get_limit_info(self, identifier: str) -> RateLimitDecision:
        """
        Current usage without counting a request
        """
        key = self.key_for(identifier)

        try:
            count = await self.store.get(key)
        except CounterStoreError as e:
            logger.warning(f"Failed to get limit info for key {key}: {e}")
            count = 0

        remaining = max(0, self.max_requests - count)
        return self._decision(key, allowed=remaining > 0, remaining=remaining)

    async def reset(self, identifier: str) -> bool:
        """
        Reset rate limit for an identifier (e.g., unblocking a user)

        Returns:
            bool: True if a counter was removed
        """
        key = self.key_for(identifier)

        try:
            deleted = await self.store.delete(key)
        except CounterStoreError as e:
            logger.warning(f"Failed to reset rate limit for key {key}: {e}")
            return False

        if deleted:
            logger.info(f"Rate limit reset for key {key}")
        return deleted

    @staticmethod
    def headers_for(decision: RateLimitDecision) -> dict[str, str]:
        return {
            Headers.RATE_LIMIT_LIMIT: str(decision.limit),
            Headers.RATE_LIMIT_REMAINING: str(decision.remaining),
        }

    def _decision(self, key: str, allowed: bool, remaining: int) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=allowed,
            key=key,
            limit=self.max_requests,
            remaining=remaining,
            window=self.window,
        )
