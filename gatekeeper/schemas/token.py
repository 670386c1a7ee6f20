from typing import Any

from gatekeeper.schemas.base import BaseSchema


class Token(BaseSchema):
    """Token response schema"""

    access_token: str
    token_type: str = "Bearer"

    def __str__(self):
        return self.token_type + " " + self.access_token


class TokenPayload(BaseSchema):
    """Token submitted for refresh or verification"""

    token: str


class TokenVerification(BaseSchema):
    valid: bool


class IdentityResponse(BaseSchema):
    """The authenticated subject and the claims it presented"""

    id: str
    claims: dict[str, Any]
