import pytest

from gatekeeper.core.constants import Headers, RejectionReason
from gatekeeper.core.types import Anonymous, Authenticated, Rejected, ResponseSignals
from gatekeeper.middleware.pipeline import (
    Allowed,
    GuardPipeline,
    RequestContext,
    authentication_step,
    rate_limit_step,
    request_validation_step,
)
from gatekeeper.services.authenticator import JWTAuthenticator
from gatekeeper.services.cache.counter_store import MemoryCounterStore
from gatekeeper.services.cache.rate_limiter import RateLimiter
from gatekeeper.services.identity import SimpleIdentity
from gatekeeper.services.request_validator import RequestValidator
from tests.utils import bearer


def make_context(path="/api/v1/items", method="GET", headers=None, body=None) -> RequestContext:
    return RequestContext(
        method=method,
        path=path,
        headers=headers or {},
        client_ip="10.0.0.1",
        body=body,
    )


@pytest.fixture
def limiter(memory_store: MemoryCounterStore) -> RateLimiter:
    return RateLimiter(memory_store, max_requests=2, window=60)


@pytest.fixture
def pipeline(authenticator: JWTAuthenticator, limiter: RateLimiter) -> GuardPipeline:
    return GuardPipeline(
        [
            rate_limit_step(limiter),
            request_validation_step(RequestValidator()),
            authentication_step(authenticator, protected_paths=["/api/v1/auth/me"]),
        ]
    )


class TestGuardPipeline:
    """Test step ordering and short-circuiting."""

    @pytest.mark.anyio
    async def test_empty_pipeline_allows(self):
        outcome = await GuardPipeline([]).run(make_context(), ResponseSignals())

        assert outcome == Allowed()

    @pytest.mark.anyio
    async def test_stops_at_first_rejection(self):
        calls = []

        async def reject(context, signals):
            calls.append("reject")
            return Rejected(reason=RejectionReason.INVALID_REQUEST, detail="no", status_code=400)

        async def never(context, signals):
            calls.append("never")
            return Allowed()

        outcome = await GuardPipeline([reject, never]).run(make_context(), ResponseSignals())

        assert isinstance(outcome, Rejected)
        assert calls == ["reject"]

    @pytest.mark.anyio
    async def test_anonymous_on_public_path(self, pipeline: GuardPipeline):
        context = make_context()
        signals = ResponseSignals()

        outcome = await pipeline.run(context, signals)

        assert outcome == Allowed()
        assert context.auth_result == Anonymous()
        assert context.rate_limit.remaining == 1
        assert signals.headers[Headers.RATE_LIMIT_REMAINING] == "1"

    @pytest.mark.anyio
    async def test_anonymous_on_protected_path(self, pipeline: GuardPipeline):
        signals = ResponseSignals()

        outcome = await pipeline.run(make_context(path="/api/v1/auth/me"), signals)

        assert isinstance(outcome, Rejected)
        assert outcome.reason == RejectionReason.UNAUTHENTICATED
        assert signals.status_code == 401
        assert signals.headers[Headers.WWW_AUTHENTICATE] == 'Bearer realm="API"'

    @pytest.mark.anyio
    async def test_authenticated_sets_user(
        self, pipeline: GuardPipeline, authenticator: JWTAuthenticator
    ):
        token = authenticator.issue(SimpleIdentity(id="u1"))
        context = make_context(path="/api/v1/auth/me", headers=bearer(token))

        outcome = await pipeline.run(context, ResponseSignals())

        assert outcome == Allowed()
        assert isinstance(context.auth_result, Authenticated)
        assert context.user_id == "u1"

    @pytest.mark.anyio
    async def test_rejected_token(self, pipeline: GuardPipeline):
        signals = ResponseSignals()

        outcome = await pipeline.run(make_context(headers=bearer("garbage")), signals)

        assert isinstance(outcome, Rejected)
        assert outcome.reason == RejectionReason.MALFORMED_TOKEN
        assert signals.status_code == 401

    @pytest.mark.anyio
    async def test_rate_limit_before_authentication(self, pipeline: GuardPipeline):
        for _ in range(2):
            await pipeline.run(make_context(), ResponseSignals())

        context = make_context(headers=bearer("garbage"))
        signals = ResponseSignals()
        outcome = await pipeline.run(context, signals)

        assert outcome.reason == RejectionReason.RATE_LIMIT_EXCEEDED
        assert outcome.status_code == 429
        assert signals.status_code == 429
        assert context.auth_result is None

    @pytest.mark.anyio
    async def test_invalid_request_consumes_quota(
        self, pipeline: GuardPipeline, memory_store: MemoryCounterStore
    ):
        def invalid_context() -> RequestContext:
            return make_context(
                method="POST",
                headers={"Content-Type": "application/json"},
                body=b"{invalid",
            )

        for _ in range(2):
            context = invalid_context()
            signals = ResponseSignals()
            outcome = await pipeline.run(context, signals)

            assert outcome.reason == RejectionReason.INVALID_REQUEST
            assert outcome.status_code == 400
            assert signals.status_code == 400
            assert context.rate_limit.allowed is True

        assert await memory_store.get("rate_limit:ip:10.0.0.1") == 2

        outcome = await pipeline.run(invalid_context(), ResponseSignals())

        assert outcome.reason == RejectionReason.RATE_LIMIT_EXCEEDED
        assert outcome.status_code == 429

    @pytest.mark.anyio
    async def test_host_user_id_used_for_rate_limit(self, pipeline: GuardPipeline):
        context = make_context()
        context.user_id = "u9"

        await pipeline.run(context, ResponseSignals())

        assert context.rate_limit.key == "rate_limit:user:u9"


class TestRequestContext:
    """Test header accessors."""

    def test_content_headers(self):
        context = make_context(headers={"content-type": "application/json", "content-length": "2"})

        assert context.content_type == "application/json"
        assert context.content_length == "2"

    def test_missing_content_headers(self):
        context = make_context()

        assert context.content_type is None
        assert context.content_length is None
