from .base import ConfigurationError, CustomException, HTTPException
from .rate_limiter import (
    CounterStoreError,
    RateLimitConfigurationError,
    RateLimiterException,
)
from .request import RequestValidationError
from .token import (
    BadSignatureError,
    InvalidAudienceError,
    InvalidClaimsError,
    InvalidIssuerError,
    MalformedTokenError,
    MissingClaimError,
    TokenError,
    TokenExpiredError,
    TokenNotYetValidError,
)

__all__ = [
    "CustomException",
    "ConfigurationError",
    "HTTPException",
    "RateLimiterException",
    "RateLimitConfigurationError",
    "CounterStoreError",
    "RequestValidationError",
    "TokenError",
    "MalformedTokenError",
    "BadSignatureError",
    "TokenExpiredError",
    "TokenNotYetValidError",
    "InvalidClaimsError",
    "MissingClaimError",
    "InvalidIssuerError",
    "InvalidAudienceError",
]
