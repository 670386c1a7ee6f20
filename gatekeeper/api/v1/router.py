from fastapi import APIRouter, Depends, status

from gatekeeper.api.v1.deps.rate_limit import rate_limit_auth
from gatekeeper.api.v1.endpoints import auth
from gatekeeper.core import responses

api_v1_router = APIRouter(prefix="/api/v1")


api_v1_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Auth"],
    dependencies=[Depends(rate_limit_auth)],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": responses.BadRequestResponse},
        status.HTTP_429_TOO_MANY_REQUESTS: {
            "model": responses.TooManyRequestsResponse,
            "headers": {
                "X-RateLimit-Limit": {
                    "description": "Maximum requests allowed per window",
                    "schema": {"type": "integer", "example": 10},
                },
                "X-RateLimit-Remaining": {
                    "description": "Requests remaining in current window",
                    "schema": {"type": "integer", "example": 9},
                },
            },
        },
    },
)
