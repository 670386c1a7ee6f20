from typing import Iterable

from gatekeeper.core.exceptions import (
    InvalidAudienceError,
    InvalidIssuerError,
    MissingClaimError,
)
from gatekeeper.core.types import JWTClaims


class ClaimValidator:
    """
    Checks decoded claims against the service's expectations.

    Checks run in order and stop at the first failure: required claims (in
    configured order), then issuer, then audience.
    """

    def __init__(
        self,
        required_claims: Iterable[str] = (),
        issuer: str | None = None,
        audience: str | None = None,
    ):
        # dict.fromkeys keeps the configured order and drops duplicates
        self.required_claims = tuple(dict.fromkeys(required_claims))
        self.issuer = issuer
        self.audience = audience

    def validate(self, claims: JWTClaims) -> None:
        """
        Validate token claims

        Args:
            claims: Decoded token payload

        Raises:
            MissingClaimError: A required claim is absent
            InvalidIssuerError: iss is absent or differs from the expected issuer
            InvalidAudienceError: aud is absent or does not name the expected audience
        """
        for claim in self.required_claims:
            if claims.get(claim) is None:
                raise MissingClaimError(claim)

        if self.issuer is not None and claims.get("iss") != self.issuer:
            raise InvalidIssuerError()

        if self.audience is not None and not self._audience_matches(claims.get("aud")):
            raise InvalidAudienceError()

    def _audience_matches(self, aud) -> bool:
        if isinstance(aud, list):
            return self.audience in aud

        return aud == self.audience
