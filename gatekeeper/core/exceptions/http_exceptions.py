from starlette import status

from gatekeeper.core.exceptions.base import HTTPException


class UnauthorizedException(HTTPException):
    """
    Authentication is required and has failed or has not yet been provided.
    Raise it with a ``WWW-Authenticate`` challenge header.
    """

    status_code_default = status.HTTP_401_UNAUTHORIZED


class TooManyRequestsException(HTTPException):
    """
    The caller exhausted its quota for the current window. Raise it with the
    rate limit usage headers.
    """

    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS


class ServiceUnavailableException(HTTPException):
    """
    A backing service (the counter store) is not answering.
    """

    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
