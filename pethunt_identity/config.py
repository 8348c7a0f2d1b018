from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import os

from psycopg.conninfo import make_conninfo


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values read once at process start."""

    app_name: str = "pethunt-identity"
    version: str = "0.1.0"
    postgres_host: str = os.getenv("POSTGRES_HOST", "localhost")
    postgres_port: int = int(os.getenv("POSTGRES_PORT", "5432"))
    postgres_db: str = os.getenv("POSTGRES_DB", "pethunt")
    postgres_user: str = os.getenv("POSTGRES_USER", "pethunt")
    postgres_password: str = field(
        default=os.getenv("POSTGRES_PASSWORD", "pethunt"), repr=False
    )
    pool_min_size: int = int(os.getenv("POOL_MIN_SIZE", "1"))
    pool_max_size: int = int(os.getenv("POOL_MAX_SIZE", "10"))
    pool_timeout_seconds: float = float(os.getenv("POOL_TIMEOUT_SECONDS", "5"))
    http_host: str = os.getenv("HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("HTTP_PORT", "8080"))
    jwt_secret: str = field(
        default=os.getenv("JWT_SECRET", "dev-secret-change-me-dev-secret-change-me"),
        repr=False,
    )
    jwt_issuer: str = os.getenv("JWT_ISSUER", "pethunt-server")
    jwt_audience: str = os.getenv("JWT_AUDIENCE", "pethunt-clients")
    jwt_ttl_seconds: int = int(os.getenv("JWT_TTL_SECONDS", "3600"))
    argon2_time_cost: int = int(os.getenv("ARGON2_TIME_COST", "3"))
    argon2_memory_cost: int = int(os.getenv("ARGON2_MEMORY_COST", "65536"))
    argon2_parallelism: int = int(os.getenv("ARGON2_PARALLELISM", "4"))
    cors_origins: tuple[str, ...] = tuple(
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",")
        if origin.strip()
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def database_url(self) -> str:
        """libpq connection string assembled from the individual Postgres settings."""
        return make_conninfo(
            host=self.postgres_host,
            port=self.postgres_port,
            dbname=self.postgres_db,
            user=self.postgres_user,
            password=self.postgres_password,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
