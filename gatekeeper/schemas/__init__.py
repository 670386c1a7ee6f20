from .base import BaseSchema
from .health_check import HealthCheckResponse
from .token import IdentityResponse, Token, TokenPayload, TokenVerification

__all__ = [
    "BaseSchema",
    "HealthCheckResponse",
    "Token",
    "TokenPayload",
    "TokenVerification",
    "IdentityResponse",
]
