from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from gatekeeper.api.routes import api_router
from gatekeeper.core.config import Environment, Settings, settings as default_settings, split_csv
from gatekeeper.core.logger import configure_uvicorn_logging, setup_logger, shutdown_logger
from gatekeeper.core.utils import Clock, TrustedProxies, system_clock
from gatekeeper.middleware import (
    GuardMiddleware,
    GuardPipeline,
    LoggingMiddleware,
    authentication_step,
    rate_limit_step,
    request_validation_step,
)
from gatekeeper.services.authenticator import build_authenticator
from gatekeeper.services.cache.counter_store import (
    CounterStore,
    MemoryCounterStore,
    RedisCounterStore,
)
from gatekeeper.services.cache.rate_limiter import RateLimiter
from gatekeeper.services.identity import IdentityResolver, StaticIdentityResolver
from gatekeeper.services.request_validator import RequestValidator

ALLOWED_ENVIRONMENTS = {Environment.LOCAL, Environment.DEV, Environment.STG}


def build_pipeline(app: FastAPI, settings: Settings) -> GuardPipeline:
    """
    Standard guard order: rate limiting, request validation, authentication
    """
    steps = []

    if settings.rate_limit_enabled:
        steps.append(rate_limit_step(app.state.rate_limiter))

    steps.append(
        request_validation_step(
            RequestValidator(
                allowed_content_types=settings.request_allowed_content_types_list,
                max_body_size=settings.request_max_body_size,
            )
        )
    )
    steps.append(
        authentication_step(app.state.authenticator, protected_paths=settings.protected_paths_list)
    )

    return GuardPipeline(steps)


def create_app(
    resolver: IdentityResolver,
    counter_store: CounterStore | None = None,
    settings: Settings = default_settings,
    clock: Clock = system_clock,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        resolver: Maps token subjects to identities
        counter_store: Rate limit counters. Defaults to an in-memory store in
            the LOCAL environment and Redis elsewhere.
        settings: Application settings
        clock: Unix-seconds clock shared by the codec and the in-memory store
        configure_logging: Install the Loguru sinks on startup

    Raises:
        ConfigurationError: If the signing key, token lifetime or rate limits are invalid
    """
    if counter_store is None:
        if settings.current_environment == Environment.LOCAL:
            counter_store = MemoryCounterStore(clock)
        else:
            counter_store = RedisCounterStore(app_settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logger(settings)
            configure_uvicorn_logging()

        logger.info("Initializing resources...")
        if not await counter_store.health_check():
            logger.error("Counter store health check failed. Exiting application.")
            raise RuntimeError("Counter store is not healthy.")
        logger.success("Resources initialized.")

        yield  # Application runs here

        logger.info("Cleaning up resources...")
        await counter_store.close()
        if configure_logging:
            shutdown_logger()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        description=settings.app_description,
        openapi_url=(
            "/openapi.json" if settings.current_environment in ALLOWED_ENVIRONMENTS else None
        ),
        docs_url="/docs" if settings.current_environment in ALLOWED_ENVIRONMENTS else None,
        redoc_url="/redoc" if settings.current_environment in ALLOWED_ENVIRONMENTS else None,
        lifespan=lifespan,
    )

    # Configuration errors surface here, before the app serves anything
    app.state.counter_store = counter_store
    app.state.trusted_proxies = TrustedProxies(settings.trusted_proxies_list)
    app.state.authenticator = build_authenticator(settings, resolver, clock)
    app.state.rate_limiter = RateLimiter(
        store=counter_store,
        max_requests=settings.rate_limit_default,
        window=settings.rate_limit_window,
        scope=settings.rate_limit_scope,
    )

    # Middleware added last runs first: CORS, logging, then the guard
    app.add_middleware(
        GuardMiddleware,
        pipeline=build_pipeline(app, settings),
        trusted_proxies=app.state.trusted_proxies,
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-Request-ID"],
        max_age=86400,
    )

    app.include_router(api_router)

    return app


def create_default_app() -> FastAPI:
    """
    Application served by ``main.py``: identities come from the
    STATIC_IDENTITIES setting. Real deployments call ``create_app`` with
    their own resolver.
    """
    resolver = StaticIdentityResolver.from_ids(split_csv(default_settings.static_identities))
    return create_app(resolver, settings=default_settings)
