from typing import Annotated

from fastapi import APIRouter, Depends, status
from loguru import logger

from gatekeeper.api.v1.deps.auth import get_authenticator, get_current_authentication
from gatekeeper.api.v1.deps.rate_limit import rate_limit_user
from gatekeeper.core import responses
from gatekeeper.core.exceptions import TokenError, http_exceptions
from gatekeeper.core.types import Authenticated
from gatekeeper.core.utils import mask_token
from gatekeeper.schemas import IdentityResponse, Token, TokenPayload, TokenVerification
from gatekeeper.services.authenticator import JWTAuthenticator

router = APIRouter()


@router.post(
    "/refresh",
    response_model=Token,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
    },
    summary="Refresh token",
    description="Reissue a still-valid token with a new lifetime and JWT ID.",
)
async def refresh_token(
    token_payload: TokenPayload,
    authenticator: Annotated[JWTAuthenticator, Depends(get_authenticator)],
):
    try:
        access_token = authenticator.refresh(token_payload.token)
    except TokenError as e:
        logger.info(f"Refresh refused for token {mask_token(token_payload.token)}: {e.message}")
        raise http_exceptions.UnauthorizedException(
            e.message,
            headers={"WWW-Authenticate": authenticator.challenge},
        )

    return Token(access_token=access_token)


@router.post(
    "/verify",
    response_model=TokenVerification,
    summary="Verify token",
    description="Check signature and lifetime without resolving the subject.",
)
async def verify_token(
    token_payload: TokenPayload,
    authenticator: Annotated[JWTAuthenticator, Depends(get_authenticator)],
):
    return TokenVerification(valid=authenticator.verify(token_payload.token))


@router.get(
    "/me",
    dependencies=[Depends(rate_limit_user)],
    response_model=IdentityResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": responses.UnauthorizedResponse},
    },
    summary="Current identity",
)
async def read_current_identity(
    authentication: Annotated[Authenticated, Depends(get_current_authentication)],
):
    return IdentityResponse(id=str(authentication.identity.id), claims=authentication.claims)
