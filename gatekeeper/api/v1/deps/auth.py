from typing import Annotated, Any

from fastapi import Depends, Request, Response

from gatekeeper.core.exceptions import http_exceptions
from gatekeeper.core.types import Anonymous, Authenticated, AuthResult, Rejected
from gatekeeper.services.authenticator import JWTAuthenticator


def get_authenticator(request: Request) -> JWTAuthenticator:
    return request.app.state.authenticator


async def get_auth_result(
    request: Request,
    response: Response,
    authenticator: Annotated[JWTAuthenticator, Depends(get_authenticator)],
) -> AuthResult:
    """
    Authentication result for the current request

    Reuses the result the guard middleware stored on the request, and
    authenticates here when the route is served without the middleware.
    """
    result = getattr(request.state, "auth_result", None)

    if result is None:
        result = await authenticator.authenticate(request.headers, response)
        request.state.auth_result = result

    return result


def _unauthorized(result: AuthResult, authenticator: JWTAuthenticator):
    detail = result.detail if isinstance(result, Rejected) else "Not authenticated"

    return http_exceptions.UnauthorizedException(
        detail=detail,
        headers={"WWW-Authenticate": authenticator.challenge},
    )


async def get_current_authentication(
    result: Annotated[AuthResult, Depends(get_auth_result)],
    authenticator: Annotated[JWTAuthenticator, Depends(get_authenticator)],
) -> Authenticated:
    """
    Require a valid bearer token

    Raises:
        UnauthorizedException: If the request is anonymous or the token was rejected
    """
    if not isinstance(result, Authenticated):
        raise _unauthorized(result, authenticator)

    return result


async def get_current_identity(
    authentication: Annotated[Authenticated, Depends(get_current_authentication)],
) -> Any:
    return authentication.identity


async def get_optional_identity(
    result: Annotated[AuthResult, Depends(get_auth_result)],
    authenticator: Annotated[JWTAuthenticator, Depends(get_authenticator)],
) -> Any | None:
    """
    Identity if a valid token was presented, None for anonymous requests

    Raises:
        UnauthorizedException: If a token was presented but rejected
    """
    if isinstance(result, Anonymous):
        return None

    if isinstance(result, Rejected):
        raise _unauthorized(result, authenticator)

    return result.identity
