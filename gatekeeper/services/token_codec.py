import json
from typing import Any, Mapping

from jose import jws, jwt
from jose.constants import ALGORITHMS
from jose.exceptions import JOSEError
from jose.utils import base64url_decode, base64url_encode
from loguru import logger

from gatekeeper.core.exceptions import (
    BadSignatureError,
    ConfigurationError,
    MalformedTokenError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from gatekeeper.core.types import JWTClaims
from gatekeeper.core.utils import Clock, system_clock

DEFAULT_LEEWAY = 60


class TokenCodec:
    """
    Signs and verifies compact JWTs.

    Decoding runs in a fixed order so that every failure maps to exactly one
    error type:

    1. Structure: three segments, header and payload are base64url JSON objects
       (MalformedTokenError)
    2. Signature against the configured key and algorithm only (BadSignatureError)
    3. Time claims ``exp`` and ``nbf`` with a symmetric leeway
       (TokenExpiredError, TokenNotYetValidError)

    Example:
        ```python
        codec = TokenCodec(key="secret", algorithm="HS256")
        token = codec.encode({"sub": "u1", "exp": now + 3600})
        claims = codec.decode(token)
        ```
    """

    def __init__(
        self,
        key: str | bytes | None,
        algorithm: str = ALGORITHMS.HS256,
        leeway: int = DEFAULT_LEEWAY,
        clock: Clock = system_clock,
        verify_key: str | bytes | None = None,
    ):
        """
        Args:
            key: Signing key. Also used for verification unless verify_key is given.
            algorithm: JWS algorithm identifier (HS256, RS256, ...)
            leeway: Clock skew tolerance in seconds applied to exp and nbf
            clock: Returns the current unix time in seconds
            verify_key: Public key for asymmetric algorithms

        Raises:
            ConfigurationError: If the key is empty, the algorithm unsupported
                or the leeway negative
        """
        if not key:
            raise ConfigurationError("JWT key is not configured")
        if algorithm not in ALGORITHMS.SUPPORTED:
            raise ConfigurationError(f"Unsupported JWT algorithm: {algorithm}")
        if leeway < 0:
            raise ConfigurationError(f"JWT leeway must not be negative, got {leeway}")

        self.algorithm = algorithm
        self.leeway = leeway
        self._key = key
        self._verify_key = verify_key or key
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    def encode(self, claims: Mapping[str, Any]) -> str:
        """
        Sign claims into a compact token

        Args:
            claims: Token payload

        Returns:
            Encoded JWT token
        """
        return jwt.encode(dict(claims), self._key, algorithm=self.algorithm)

    def decode(
        self,
        token: str,
        verify_signature: bool = True,
        verify_expiration: bool = True,
        leeway: int | None = None,
    ) -> JWTClaims:
        """
        Decode a token and validate it

        Args:
            token: Compact JWT
            verify_signature: Check the signature. Only disable for inspection,
                never for authorization decisions.
            verify_expiration: Check exp and nbf against the clock
            leeway: Override the configured clock skew tolerance

        Returns:
            The payload claims exactly as they were encoded

        Raises:
            MalformedTokenError: Token structure or time claims are invalid
            BadSignatureError: Signature verification failed
            TokenExpiredError: now > exp + leeway
            TokenNotYetValidError: now < nbf - leeway
        """
        _, claims = self._split(token)

        if verify_signature:
            self._check_canonical_signature(token)
            try:
                jws.verify(token, self._verify_key, algorithms=[self.algorithm])
            except JOSEError as e:
                raise BadSignatureError(exception=e)

        if verify_expiration:
            self._check_time_claims(claims, self.leeway if leeway is None else leeway)

        return claims

    def get_unverified_claims(self, token: str) -> JWTClaims | None:
        """
        Extract claims from a token without any validation

        Returns:
            The payload, or None if the token is malformed
        """
        try:
            return self._split(token)[1]
        except MalformedTokenError:
            logger.debug("Could not inspect malformed token")
            return None

    @staticmethod
    def _split(token: str) -> tuple[dict[str, Any], JWTClaims]:
        if not isinstance(token, str):
            raise MalformedTokenError("Token must be a string")

        parts = token.split(".")
        if len(parts) != 3 or not parts[0] or not parts[1]:
            raise MalformedTokenError("Token must have three segments")

        try:
            header = json.loads(base64url_decode(parts[0].encode("ascii")))
            claims = json.loads(base64url_decode(parts[1].encode("ascii")))
        except ValueError as e:
            raise MalformedTokenError("Token segments are not valid base64url JSON", e)

        if not isinstance(header, dict) or not isinstance(claims, dict):
            raise MalformedTokenError("Token header and payload must be JSON objects")

        return header, claims

    @staticmethod
    def _check_canonical_signature(token: str) -> None:
        # Spare bits in the last base64url character must be zero, otherwise
        # several encodings decode to the same signature bytes
        signature = token.rsplit(".", 1)[1]
        try:
            canonical = base64url_encode(base64url_decode(signature.encode("ascii")))
        except ValueError as e:
            raise BadSignatureError(exception=e)

        if canonical.decode("ascii") != signature:
            raise BadSignatureError()

    def _check_time_claims(self, claims: JWTClaims, leeway: int) -> None:
        now = self._clock()

        if "exp" in claims:
            exp = self._numeric_claim(claims, "exp")
            if now > exp + leeway:
                raise TokenExpiredError()

        if "nbf" in claims:
            nbf = self._numeric_claim(claims, "nbf")
            if now < nbf - leeway:
                raise TokenNotYetValidError()

    @staticmethod
    def _numeric_claim(claims: JWTClaims, name: str) -> int | float:
        value = claims[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedTokenError(f"Claim '{name}' must be a numeric timestamp")

        return value
