from gatekeeper.core.exceptions.base import ConfigurationError, CustomException


class RateLimiterException(CustomException):
    """
    Base exception for rate limiting
    """


class RateLimitConfigurationError(ConfigurationError, RateLimiterException):
    """
    Limit or window is not a positive integer
    """


class CounterStoreError(RateLimiterException):
    """
    Counter store backend failed to answer
    """
