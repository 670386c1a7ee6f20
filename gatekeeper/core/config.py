import logging
import tomllib
from enum import StrEnum
from importlib import metadata
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL

PROJECT_DIR = Path(__file__).parent.parent.parent
PROJECT_TOML_PATH = PROJECT_DIR / "pyproject.toml"


def _load_project_metadata() -> dict[str, str]:
    if PROJECT_TOML_PATH.is_file():
        with open(PROJECT_TOML_PATH, "rb") as f:
            project = tomllib.load(f)["project"]

        return {
            "name": project["name"],
            "version": project["version"],
            "description": project.get("description", ""),
        }

    # Installed without the source tree
    dist = metadata.metadata("gatekeeper")
    return {
        "name": dist["Name"],
        "version": dist["Version"],
        "description": dist.get("Summary", ""),
    }


PYPROJECT_CONTENT = _load_project_metadata()


class Environment(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    STG = "stg"
    PRD = "prd"


def convert_app_name(s: str) -> str:
    return " ".join(word.capitalize() for word in s.split("-"))


def split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=False,
        extra="ignore",
    )

    # App variables
    app_name: str = PYPROJECT_CONTENT["name"]
    app_title: str = convert_app_name(PYPROJECT_CONTENT["name"])
    app_version: str = PYPROJECT_CONTENT["version"]
    app_description: str = PYPROJECT_CONTENT["description"]

    backend_host: str = "127.0.0.1"
    backend_port: int = 8000
    workers_count: int = 1
    reload_uvicorn: bool = False

    cors_origins: str = "*"

    # Current working environment
    current_environment: Environment = Environment.LOCAL
    log_level: int = logging.INFO
    debug: bool = False

    # Token settings. An empty secret is rejected when the codec is built.
    secret_key: str = ""
    jwt_algorithm: str = "HS256"
    jwt_leeway: int = 60  # Clock skew tolerance in seconds
    access_token_expire_seconds: int = 3600
    jwt_issuer: str | None = None
    jwt_audience: str | None = None
    jwt_required_claims: str = ""
    jwt_header: str = "Authorization"
    jwt_realm: str = "API"

    # Paths that require an authenticated identity (prefix match)
    protected_paths: str = "/api/v1/auth/me"

    # Rate limiting settings (requests per window)
    rate_limit_enabled: bool = True
    rate_limit_default: int = 100  # Whole-application guard
    rate_limit_window: int = 60  # Window in seconds
    rate_limit_strict: int = 10  # Token endpoints
    rate_limit_user: int = 300  # Authenticated user endpoints, per user
    rate_limit_scope: str = "rate_limit"

    # Comma-separated subjects served by the built-in static resolver (local use)
    static_identities: str = ""

    # Request validation
    request_max_body_size: int = 10 * 1024 * 1024
    request_allowed_content_types: str = "application/json"

    # Comma-separated proxy addresses or networks allowed to set X-Forwarded-For.
    # Empty trusts no one: the limiter keys on the socket peer.
    trusted_proxies: str = ""

    # Variables for Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_user: str | None = None
    redis_pass: str | None = None
    redis_base: int | None = None
    redis_max_pool_connections: int = 10
    redis_socket_connect_timeout: int = 5
    redis_socket_timeout: int = 5

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS origins from a comma-separated string.
        """
        return split_csv(self.cors_origins)

    @computed_field
    @property
    def jwt_required_claims_list(self) -> list[str]:
        """
        Parse required token claims from a comma-separated string.
        """
        return split_csv(self.jwt_required_claims)

    @computed_field
    @property
    def protected_paths_list(self) -> list[str]:
        return split_csv(self.protected_paths)

    @computed_field
    @property
    def request_allowed_content_types_list(self) -> list[str]:
        return split_csv(self.request_allowed_content_types)

    @computed_field
    @property
    def trusted_proxies_list(self) -> list[str]:
        return split_csv(self.trusted_proxies)

    @computed_field
    @property
    def redis_url(self) -> URL:
        """
        Assemble REDIS URL from settings.
        """
        path = ""

        if self.redis_base is not None:
            path = f"/{self.redis_base}"

        return URL.build(
            scheme="redis",
            host=self.redis_host,
            port=self.redis_port,
            user=self.redis_user,
            password=self.redis_pass,
            path=path,
        )


settings = Settings()
