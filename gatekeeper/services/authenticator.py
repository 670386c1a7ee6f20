import re
from typing import Any, Mapping

from loguru import logger

from gatekeeper.core.config import Settings
from gatekeeper.core.constants import Headers, RejectionReason
from gatekeeper.core.exceptions import (
    BadSignatureError,
    ConfigurationError,
    InvalidClaimsError,
    MalformedTokenError,
    TokenError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from gatekeeper.core.types import (
    Anonymous,
    Authenticated,
    AuthResult,
    JWTClaims,
    Rejected,
)
from gatekeeper.core.utils import Clock, generate_jti, get_header, system_clock
from gatekeeper.services.claim_validator import ClaimValidator
from gatekeeper.services.identity import IdentityResolver
from gatekeeper.services.token_codec import TokenCodec

DEFAULT_PATTERN = r"^Bearer\s+(.*?)$"

_REJECTION_REASONS: tuple[tuple[type[TokenError], RejectionReason], ...] = (
    (TokenExpiredError, RejectionReason.EXPIRED),
    (TokenNotYetValidError, RejectionReason.NOT_YET_VALID),
    (BadSignatureError, RejectionReason.BAD_SIGNATURE),
    (InvalidClaimsError, RejectionReason.INVALID_CLAIMS),
    (MalformedTokenError, RejectionReason.MALFORMED_TOKEN),
)


class JWTAuthenticator:
    """
    Bearer-token authentication over a TokenCodec.

    ``authenticate`` ends in one of three results:

    - ``Anonymous``: the configured header is absent. Whether that is
      acceptable is up to the route.
    - ``Rejected(reason)``: the header or token is unusable. When a response
      signal sink is passed, it receives status 401 and a
      ``WWW-Authenticate: Bearer`` challenge.
    - ``Authenticated(identity, claims)``

    Nothing is cached between requests; every call decodes and resolves again.

    Example:
        ```python
        authenticator = JWTAuthenticator(codec, resolver, expiration=3600)
        token = authenticator.issue(user, {"role": "admin"})

        result = await authenticator.authenticate(request.headers, signals)
        ```
    """

    def __init__(
        self,
        codec: TokenCodec,
        resolver: IdentityResolver,
        validator: ClaimValidator | None = None,
        header: str = Headers.AUTHORIZATION,
        pattern: str = DEFAULT_PATTERN,
        expiration: int = 3600,
        issuer: str | None = None,
        audience: str | None = None,
        realm: str = "API",
    ):
        if expiration <= 0:
            raise ConfigurationError(f"Token expiration must be positive, got {expiration}")

        self.codec = codec
        self.resolver = resolver
        self.validator = validator or ClaimValidator(issuer=issuer, audience=audience)
        self.header = header
        self.pattern = re.compile(pattern)
        self.expiration = expiration
        self.issuer = issuer
        self.audience = audience
        self.realm = realm

    @property
    def challenge(self) -> str:
        return f'Bearer realm="{self.realm}"'

    async def authenticate(self, headers: Mapping[str, str], signals: Any = None) -> AuthResult:
        """
        Authenticate a request from its headers

        Args:
            headers: Request headers
            signals: Optional sink with ``status_code`` and ``headers``
                (a ResponseSignals or a Starlette Response)

        Returns:
            Authenticated, Anonymous or Rejected
        """
        auth_header = get_header(headers, self.header)

        if auth_header is None:
            return Anonymous()

        match = self.pattern.match(auth_header)
        if match is None:
            return self._reject(
                RejectionReason.MALFORMED_HEADER, "Invalid authorization header format", signals
            )

        token = match.group(1)

        try:
            claims = self.codec.decode(token)
            self.validator.validate(claims)
        except TokenError as e:
            return self._reject(self._reason_for(e), e.message, signals)

        subject = claims.get("sub")
        identity = await self.resolver.resolve(str(subject)) if subject is not None else None

        if identity is None:
            return self._reject(RejectionReason.UNKNOWN_SUBJECT, "User not found", signals)

        return Authenticated(identity=identity, claims=claims)

    def issue(self, identity: Any, extra_claims: Mapping[str, Any] | None = None) -> str:
        """
        Generate a token for an identity

        Args:
            identity: Object with an ``id`` attribute
            extra_claims: Merged over the standard claims

        Returns:
            Encoded JWT token
        """
        now = self.codec.now()

        claims: JWTClaims = {
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "nbf": now,
            "exp": now + self.expiration,
            "sub": str(identity.id),
            "jti": generate_jti(),
        }
        claims = {name: value for name, value in claims.items() if value is not None}
        claims.update(extra_claims or {})

        logger.debug(f"Issuing token for subject {claims.get('sub')}")
        return self.codec.encode(claims)

    def refresh(self, token: str) -> str:
        """
        Reissue a token with a new lifetime

        The token must still pass full decoding, so an expired token cannot
        be refreshed. iat, exp and jti are replaced; every other claim is
        carried over. The new exp is always later than the old one, also
        when refreshing within the second the token was issued.

        Raises:
            TokenError: Whatever ``TokenCodec.decode`` raises for this token
        """
        claims = self.codec.decode(token)

        now = self.codec.now()
        expires_at = now + self.expiration
        previous = claims.get("exp")
        if previous is not None and expires_at <= previous:
            expires_at = int(previous) + 1

        claims["iat"] = now
        claims["exp"] = expires_at
        claims["jti"] = generate_jti()

        return self.codec.encode(claims)

    def verify(self, token: str) -> bool:
        """Verify token without authenticating"""
        try:
            self.codec.decode(token)
            return True
        except TokenError:
            return False

    def get_claims(self, token: str) -> JWTClaims | None:
        """
        Extract claims without validation. Debugging and introspection only.
        """
        return self.codec.get_unverified_claims(token)

    def _reject(self, reason: RejectionReason, detail: str, signals: Any) -> Rejected:
        logger.warning(f"Authentication rejected: {reason} ({detail})")
        result = Rejected(reason=reason, detail=detail)

        if signals is not None:
            signals.status_code = result.status_code
            signals.headers[Headers.WWW_AUTHENTICATE] = self.challenge

        return result

    @staticmethod
    def _reason_for(error: TokenError) -> RejectionReason:
        for error_type, reason in _REJECTION_REASONS:
            if isinstance(error, error_type):
                return reason

        return RejectionReason.MALFORMED_TOKEN


def build_authenticator(
    settings: Settings,
    resolver: IdentityResolver,
    clock: Clock = system_clock,
) -> JWTAuthenticator:
    """
    Wire a JWTAuthenticator from application settings

    Raises:
        ConfigurationError: If the signing key or lifetimes are invalid
    """
    codec = TokenCodec(
        key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        leeway=settings.jwt_leeway,
        clock=clock,
    )
    validator = ClaimValidator(
        required_claims=settings.jwt_required_claims_list,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )

    logger.info(
        f"JWT authenticator configured | Algorithm: {settings.jwt_algorithm} | "
        f"Expiration: {settings.access_token_expire_seconds}s | Leeway: {settings.jwt_leeway}s"
    )

    return JWTAuthenticator(
        codec=codec,
        resolver=resolver,
        validator=validator,
        header=settings.jwt_header,
        expiration=settings.access_token_expire_seconds,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        realm=settings.jwt_realm,
    )
