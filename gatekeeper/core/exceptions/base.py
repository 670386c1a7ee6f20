from typing import Any, Optional

from fastapi import HTTPException as FastAPIHTTPException


class CustomException(Exception):
    """
    Base for all service exceptions

    Carries a human-readable message and, optionally, the lower-level
    exception that caused it.
    """

    def __init__(self, message, exception: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.exception = exception

    def __str__(self):
        if self.exception is None:
            return self.message

        return f"{self.message}\nException: {self.exception}"


class ConfigurationError(CustomException):
    """
    Invalid or missing setup value. Raised while wiring components,
    never while serving a request.
    """


class HTTPException(FastAPIHTTPException):
    """
    FastAPI HTTPException with a status fixed by the subclass.
    """

    status_code_default: int

    def __init__(self, detail: Any = None, headers: Optional[dict[str, str]] = None) -> None:
        """
        :param detail: Optional message or data returned as ``{"detail": ...}``.
        :param headers: Optional headers to include in the HTTP response.
        """
        super().__init__(status_code=self.status_code_default, detail=detail, headers=headers)
