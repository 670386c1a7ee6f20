import pytest

from gatekeeper.core.config import Settings
from gatekeeper.core.constants import Headers, RejectionReason
from gatekeeper.core.exceptions import (
    ConfigurationError,
    MissingClaimError,
    TokenExpiredError,
)
from gatekeeper.core.types import Anonymous, Authenticated, Rejected, ResponseSignals
from gatekeeper.services.authenticator import JWTAuthenticator, build_authenticator
from gatekeeper.services.claim_validator import ClaimValidator
from gatekeeper.services.identity import SimpleIdentity, StaticIdentityResolver
from gatekeeper.services.token_codec import TokenCodec
from tests.utils import FakeClock, bearer, tamper_signature

U1 = SimpleIdentity(id="u1")


class TestAuthenticate:
    """Test JWTAuthenticator.authenticate outcomes."""

    @pytest.mark.anyio
    async def test_valid_token(self, authenticator: JWTAuthenticator):
        token = authenticator.issue(U1)

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Authenticated)
        assert result.identity.id == "u1"
        assert result.claims["sub"] == "u1"
        assert result.claims["iss"] == "svc"
        assert result.claims["aud"] == "svc"

    @pytest.mark.anyio
    async def test_header_lookup_is_case_insensitive(self, authenticator: JWTAuthenticator):
        token = authenticator.issue(U1)

        result = await authenticator.authenticate({"authorization": f"Bearer {token}"})

        assert isinstance(result, Authenticated)

    @pytest.mark.anyio
    async def test_missing_header_is_anonymous(self, authenticator: JWTAuthenticator):
        signals = ResponseSignals()

        result = await authenticator.authenticate({}, signals)

        assert result == Anonymous()
        assert signals.status_code is None
        assert signals.headers == {}

    @pytest.mark.anyio
    @pytest.mark.parametrize("value", ["Basic dXNlcjpwYXNz", "Bearer", "Token abc", "bearer abc"])
    async def test_malformed_header(self, authenticator: JWTAuthenticator, value: str):
        result = await authenticator.authenticate({"Authorization": value})

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.MALFORMED_HEADER
        assert result.status_code == 401

    @pytest.mark.anyio
    async def test_malformed_token(self, authenticator: JWTAuthenticator):
        result = await authenticator.authenticate(bearer("not.a.jwt"))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.MALFORMED_TOKEN

    @pytest.mark.anyio
    async def test_expired_token(self, authenticator: JWTAuthenticator, clock: FakeClock):
        token = authenticator.issue(U1)
        clock.advance(3600 + 61)

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.EXPIRED
        assert result.detail == "Token has expired"

    @pytest.mark.anyio
    async def test_not_yet_valid_token(self, authenticator: JWTAuthenticator, clock: FakeClock):
        token = authenticator.issue(U1, {"nbf": clock() + 600})

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.NOT_YET_VALID

    @pytest.mark.anyio
    async def test_bad_signature(self, authenticator: JWTAuthenticator):
        token = tamper_signature(authenticator.issue(U1))

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.BAD_SIGNATURE

    @pytest.mark.anyio
    async def test_wrong_issuer(self, authenticator: JWTAuthenticator):
        token = authenticator.issue(U1, {"iss": "someone-else"})

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.INVALID_CLAIMS

    @pytest.mark.anyio
    async def test_unknown_subject(self, authenticator: JWTAuthenticator):
        token = authenticator.issue(SimpleIdentity(id="ghost"))

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.UNKNOWN_SUBJECT

    @pytest.mark.anyio
    async def test_token_without_subject(self, authenticator: JWTAuthenticator, codec: TokenCodec):
        token = codec.encode({"iss": "svc", "aud": "svc", "exp": codec.now() + 60})

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.UNKNOWN_SUBJECT

    @pytest.mark.anyio
    async def test_rejection_writes_challenge(self, authenticator: JWTAuthenticator):
        signals = ResponseSignals()

        await authenticator.authenticate(bearer("garbage"), signals)

        assert signals.status_code == 401
        assert signals.headers[Headers.WWW_AUTHENTICATE] == 'Bearer realm="API"'

    @pytest.mark.anyio
    async def test_success_leaves_signals_untouched(self, authenticator: JWTAuthenticator):
        signals = ResponseSignals()

        await authenticator.authenticate(bearer(authenticator.issue(U1)), signals)

        assert signals.status_code is None
        assert Headers.WWW_AUTHENTICATE not in signals.headers

    @pytest.mark.anyio
    async def test_required_claim_missing(
        self, codec: TokenCodec, resolver: StaticIdentityResolver
    ):
        authenticator = JWTAuthenticator(
            codec=codec,
            resolver=resolver,
            validator=ClaimValidator(required_claims=["role"]),
        )
        token = authenticator.issue(U1)

        result = await authenticator.authenticate(bearer(token))

        assert isinstance(result, Rejected)
        assert result.reason == RejectionReason.INVALID_CLAIMS
        assert "role" in result.detail

    @pytest.mark.anyio
    async def test_custom_header_and_pattern(
        self, codec: TokenCodec, resolver: StaticIdentityResolver
    ):
        authenticator = JWTAuthenticator(
            codec=codec, resolver=resolver, header="X-Api-Token", pattern=r"^(.+)$"
        )
        token = authenticator.issue(U1)

        result = await authenticator.authenticate({"X-Api-Token": token})

        assert isinstance(result, Authenticated)


class TestIssue:
    """Test token generation."""

    def test_standard_claims(self, authenticator: JWTAuthenticator, codec: TokenCodec, clock):
        claims = codec.decode(authenticator.issue(U1))

        assert claims["sub"] == "u1"
        assert claims["iat"] == clock()
        assert claims["nbf"] == clock()
        assert claims["exp"] == clock() + 3600
        assert len(claims["jti"]) == 32

    def test_extra_claims_override(self, authenticator: JWTAuthenticator, codec: TokenCodec):
        claims = codec.decode(authenticator.issue(U1, {"role": "admin", "sub": "u2"}))

        assert claims["role"] == "admin"
        assert claims["sub"] == "u2"

    def test_issuer_and_audience_omitted_when_unset(
        self, codec: TokenCodec, resolver: StaticIdentityResolver
    ):
        authenticator = JWTAuthenticator(codec=codec, resolver=resolver)

        claims = codec.decode(authenticator.issue(U1))

        assert "iss" not in claims
        assert "aud" not in claims

    def test_unique_jti(self, authenticator: JWTAuthenticator, codec: TokenCodec):
        first = codec.decode(authenticator.issue(U1))
        second = codec.decode(authenticator.issue(U1))

        assert first["jti"] != second["jti"]

    def test_numeric_identity_id(self, authenticator: JWTAuthenticator, codec: TokenCodec):
        claims = codec.decode(authenticator.issue(SimpleIdentity(id=42)))

        assert claims["sub"] == "42"

    @pytest.mark.parametrize("expiration", [0, -1])
    def test_invalid_expiration(self, codec, resolver, expiration):
        with pytest.raises(ConfigurationError):
            JWTAuthenticator(codec=codec, resolver=resolver, expiration=expiration)


class TestRefresh:
    """Test token refresh."""

    def test_refresh_extends_lifetime(
        self, authenticator: JWTAuthenticator, codec: TokenCodec, clock: FakeClock
    ):
        original = codec.decode(authenticator.issue(U1, {"role": "admin"}))
        token = codec.encode(original)
        clock.advance(100)

        refreshed = codec.decode(authenticator.refresh(token))

        assert refreshed["exp"] > original["exp"]
        assert refreshed["exp"] == clock() + 3600
        assert refreshed["iat"] == clock()
        assert refreshed["jti"] != original["jti"]
        assert refreshed["nbf"] == original["nbf"]
        assert refreshed["sub"] == original["sub"]
        assert refreshed["role"] == "admin"

    def test_refresh_in_same_second(self, authenticator: JWTAuthenticator, codec: TokenCodec):
        token = authenticator.issue(U1)
        original = codec.decode(token)

        first = codec.decode(authenticator.refresh(token))
        second = codec.decode(authenticator.refresh(codec.encode(first)))

        assert first["exp"] > original["exp"]
        assert second["exp"] > first["exp"]

    def test_expired_token_cannot_be_refreshed(
        self, authenticator: JWTAuthenticator, clock: FakeClock
    ):
        token = authenticator.issue(U1)
        clock.advance(3600 + 61)

        with pytest.raises(TokenExpiredError):
            authenticator.refresh(token)


class TestVerifyAndClaims:
    """Test verify and get_claims helpers."""

    def test_verify(self, authenticator: JWTAuthenticator, clock: FakeClock):
        token = authenticator.issue(U1)

        assert authenticator.verify(token) is True
        assert authenticator.verify(tamper_signature(token)) is False
        assert authenticator.verify("garbage") is False

        clock.advance(3600 + 61)
        assert authenticator.verify(token) is False

    def test_get_claims_skips_validation(self, authenticator: JWTAuthenticator):
        token = tamper_signature(authenticator.issue(U1))

        claims = authenticator.get_claims(token)

        assert claims is not None
        assert claims["sub"] == "u1"

    def test_get_claims_malformed(self, authenticator: JWTAuthenticator):
        assert authenticator.get_claims("garbage") is None


class TestBuildAuthenticator:
    """Test wiring from settings."""

    @pytest.mark.anyio
    async def test_from_settings(self, clock: FakeClock, resolver: StaticIdentityResolver):
        settings = Settings(
            secret_key="secret",
            jwt_issuer="svc",
            jwt_audience="svc",
            jwt_required_claims="sub",
            access_token_expire_seconds=120,
            jwt_realm="Internal",
        )

        authenticator = build_authenticator(settings, resolver, clock)
        token = authenticator.issue(U1)

        assert authenticator.expiration == 120
        assert authenticator.challenge == 'Bearer realm="Internal"'
        assert isinstance(await authenticator.authenticate(bearer(token)), Authenticated)

    def test_empty_secret(self, resolver: StaticIdentityResolver):
        with pytest.raises(ConfigurationError):
            build_authenticator(Settings(secret_key=""), resolver)

    def test_missing_claim_error_carries_name(self):
        assert MissingClaimError("role").claim == "role"
