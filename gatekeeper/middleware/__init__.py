from .guard import GuardMiddleware
from .logging import LoggingMiddleware
from .pipeline import (
    Allowed,
    GuardPipeline,
    RequestContext,
    authentication_step,
    rate_limit_step,
    request_validation_step,
)

__all__ = [
    "GuardMiddleware",
    "LoggingMiddleware",
    "GuardPipeline",
    "RequestContext",
    "Allowed",
    "authentication_step",
    "rate_limit_step",
    "request_validation_step",
]
