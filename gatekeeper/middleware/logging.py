import time
import uuid
from typing import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from gatekeeper.core.constants import Headers
from gatekeeper.core.logger import request_id_var


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an ID and logs its outcome.

    An ``X-Request-ID`` sent by an upstream proxy is kept, otherwise a short
    random one is generated. The ID is bound to ``request_id_var`` for every
    log record emitted while the request is handled, and echoed back in the
    response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(Headers.REQUEST_ID) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        started = time.perf_counter()
        summary = f"{request.method} {request.url.path}"

        logger.trace(
            f"{summary} - Client: {request.client.host if request.client else 'unknown'} - "
            f"User-Agent: {request.headers.get('user-agent', 'unknown')}"
        )

        try:
            response: Response = await call_next(request)

            elapsed = time.perf_counter() - started
            level = "WARNING" if response.status_code >= 400 else "TRACE"
            logger.log(level, f"{summary} - Status: {response.status_code} - Time: {elapsed:.3f}s")

            response.headers[Headers.REQUEST_ID] = request_id
            return response

        except Exception as e:
            logger.error(f"{summary} - Error: {e} - Time: {time.perf_counter() - started:.3f}s")
            raise

        finally:
            request_id_var.reset(token)
