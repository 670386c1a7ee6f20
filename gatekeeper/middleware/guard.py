from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from gatekeeper.core.types import Rejected, ResponseSignals
from gatekeeper.core.utils import TrustedProxies
from gatekeeper.middleware.pipeline import GuardPipeline, RequestContext


class GuardMiddleware(BaseHTTPMiddleware):
    """
    Runs the guard pipeline in front of every route.

    A rejection is answered directly with ``{"detail", "reason"}`` and the
    collected signal headers. Otherwise the request continues and the signal
    headers (rate limit usage) are added to the handler's response unless it
    already carries them.

    Results are exposed to handlers as ``request.state.auth_result`` and
    ``request.state.rate_limit``.

    Example:
        ```python
        app.add_middleware(GuardMiddleware, pipeline=pipeline)
        ```
    """

    def __init__(
        self,
        app: ASGIApp,
        pipeline: GuardPipeline,
        trusted_proxies: TrustedProxies | None = None,
    ):
        super().__init__(app)
        self.pipeline = pipeline
        self.trusted_proxies = trusted_proxies

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        signals = ResponseSignals()
        context = await RequestContext.from_request(request, self.trusted_proxies)

        outcome = await self.pipeline.run(context, signals)

        request.state.auth_result = context.auth_result
        request.state.rate_limit = context.rate_limit

        if isinstance(outcome, Rejected):
            return JSONResponse(
                content={"detail": outcome.detail, "reason": outcome.reason.value},
                status_code=signals.status_code or outcome.status_code,
                headers=signals.headers,
            )

        response: Response = await call_next(request)

        # Headers set closer to the handler (endpoint limits) take precedence
        for name, value in signals.headers.items():
            response.headers.setdefault(name, value)

        return response
