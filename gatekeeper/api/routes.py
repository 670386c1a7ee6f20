from fastapi import APIRouter, Request, status

from gatekeeper.api.v1.router import api_v1_router
from gatekeeper.core import responses
from gatekeeper.core.exceptions.http_exceptions import ServiceUnavailableException
from gatekeeper.schemas import HealthCheckResponse

api_router = APIRouter()


@api_router.get(
    "/health",
    response_model=HealthCheckResponse,
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": responses.ServiceUnavailableResponse},
    },
    tags=["Health"],
    summary="Health Check",
)
async def health_check(request: Request):
    if not await request.app.state.counter_store.health_check():
        raise ServiceUnavailableException(detail="Counter store unavailable")

    return {"status": "healthy"}


api_router.include_router(
    api_v1_router,
)
