from enum import StrEnum


class RateLimitScope:
    """
    Centralized registry of rate limit scopes.

    Counter keys follow the pattern: {scope}:{identifier}
    where identifier is "user:{id}" or "ip:{address}".

    Example:
        ```python
        key = f"{RateLimitScope.AUTH}:ip:192.168.1.1"
        # Result: "rate_limit:auth:ip:192.168.1.1"
        ```
    """

    # Whole-application guard applied by the middleware
    DEFAULT = "rate_limit"

    # Token endpoints (refresh, verify)
    AUTH = "rate_limit:auth"

    # Authenticated user endpoints
    USER = "rate_limit:user"

    @classmethod
    def all_scopes(cls) -> set[str]:
        """
        Get all registered scopes.

        Returns:
            set[str]: Set of all registered rate limit scopes
        """
        return {
            value
            for key, value in cls.__dict__.items()
            if isinstance(value, str) and value.startswith("rate_limit")
        }

    @classmethod
    def validate_scope(cls, scope: str) -> None:
        """
        Validate that a custom scope doesn't collide with a registered one.

        Raises:
            ValueError: If scope already exists in the registry
        """
        if scope in cls.all_scopes():
            raise ValueError(
                f"Rate limit scope '{scope}' is already registered. "
                f"Existing scopes: {cls.all_scopes()}"
            )


class Headers:
    AUTHORIZATION = "Authorization"
    WWW_AUTHENTICATE = "WWW-Authenticate"
    RATE_LIMIT_LIMIT = "X-RateLimit-Limit"
    RATE_LIMIT_REMAINING = "X-RateLimit-Remaining"
    REQUEST_ID = "X-Request-ID"


class RejectionReason(StrEnum):
    """Why a request was turned away by the guard."""

    MALFORMED_HEADER = "malformed_header"
    MALFORMED_TOKEN = "malformed_token"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    INVALID_CLAIMS = "invalid_claims"
    UNKNOWN_SUBJECT = "unknown_subject"
    UNAUTHENTICATED = "unauthenticated"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    INVALID_REQUEST = "invalid_request"
