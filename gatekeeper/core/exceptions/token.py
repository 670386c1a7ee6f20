from gatekeeper.core.exceptions.base import CustomException


class TokenError(CustomException):
    """
    Base exception for token decoding and validation
    """


class MalformedTokenError(TokenError):
    """
    Token is not a well-formed compact JWT
    """

    def __init__(self, message="Malformed token", exception: Exception | None = None):
        super().__init__(message, exception)


class BadSignatureError(TokenError):
    """
    Token signature does not match the configured key and algorithm
    """

    def __init__(self, message="Invalid token signature", exception: Exception | None = None):
        super().__init__(message, exception)


class TokenExpiredError(TokenError):
    def __init__(self, message="Token has expired", exception: Exception | None = None):
        super().__init__(message, exception)


class TokenNotYetValidError(TokenError):
    def __init__(self, message="Token is not yet valid", exception: Exception | None = None):
        super().__init__(message, exception)


class InvalidClaimsError(TokenError):
    """
    Token decoded fine but its claims are not acceptable
    """

    def __init__(self, message="Token has invalid claims", exception: Exception | None = None):
        super().__init__(message, exception)


class MissingClaimError(InvalidClaimsError):
    def __init__(self, claim: str, exception: Exception | None = None):
        super().__init__(f"Missing required claim: {claim}", exception)
        self.claim = claim


class InvalidIssuerError(InvalidClaimsError):
    def __init__(self, message="Invalid token issuer", exception: Exception | None = None):
        super().__init__(message, exception)


class InvalidAudienceError(InvalidClaimsError):
    def __init__(self, message="Invalid token audience", exception: Exception | None = None):
        super().__init__(message, exception)
