import json
from typing import Iterable

from gatekeeper.core.exceptions import ConfigurationError, RequestValidationError

JSON_CONTENT_TYPE = "application/json"


class RequestValidator:
    """
    Rejects requests with an unsupported content type, an oversized body or
    a JSON body that does not parse.

    Requests without a content type (GET, DELETE, ...) are not checked
    against the allow list.
    """

    def __init__(
        self,
        allowed_content_types: Iterable[str] = (JSON_CONTENT_TYPE,),
        max_body_size: int = 10 * 1024 * 1024,
    ):
        if max_body_size <= 0:
            raise ConfigurationError(f"Maximum body size must be positive, got {max_body_size}")

        self.allowed_content_types = {ct.lower() for ct in allowed_content_types}
        self.max_body_size = max_body_size

    @staticmethod
    def media_type(content_type: str | None) -> str | None:
        if not content_type:
            return None

        return content_type.split(";", 1)[0].strip().lower() or None

    def validate(
        self,
        content_type: str | None,
        content_length: str | int | None = None,
        body: bytes | None = None,
    ) -> None:
        """
        Args:
            content_type: Raw Content-Type header
            content_length: Raw Content-Length header
            body: Raw request body, only inspected for JSON requests

        Raises:
            RequestValidationError: If any check fails
        """
        media_type = self.media_type(content_type)

        if media_type is not None and media_type not in self.allowed_content_types:
            raise RequestValidationError("Unsupported content type")

        if content_length is not None:
            try:
                length = int(content_length)
            except (TypeError, ValueError) as e:
                raise RequestValidationError("Invalid Content-Length header", e)

            if length > self.max_body_size:
                raise RequestValidationError("Request body too large")

        if body is not None and len(body) > self.max_body_size:
            raise RequestValidationError("Request body too large")

        if media_type == JSON_CONTENT_TYPE and body:
            try:
                json.loads(body)
            except ValueError as e:
                raise RequestValidationError(f"Invalid JSON: {e}", e)
