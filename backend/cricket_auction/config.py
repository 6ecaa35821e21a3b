"""Application configuration."""
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_debug: bool = True
    log_level: str = "DEBUG"

    # Persistence - 미설정 시 인메모리 스토어 사용
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy async database URL (unset = in-memory store)",
    )
    db_pool_size: int = Field(
        default=20,
        description="DB connection pool size",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max overflow connections",
    )

    # Redis - 멀티 인스턴스 브로드캐스트 릴레이 (선택)
    redis_url: str | None = Field(
        default=None,
        description="Redis URL for cross-instance fan-out (unset = local only)",
    )
    redis_max_connections: int = 50
    redis_socket_connect_timeout: float = 5.0

    # JWT - tokens are issued by the auth service, verified here
    jwt_secret_key: str = Field(
        ...,
        description="JWT secret key (required, minimum 32 characters)",
    )
    jwt_algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Auction
    upcoming_preview_size: int = Field(
        default=5,
        description="Number of upcoming players included in each snapshot",
    )
    default_max_squad_size: int = Field(
        default=18,
        description="Squad size limit when a tournament does not set one",
    )
    default_max_overseas_players: int = Field(
        default=6,
        description="Overseas player limit when a tournament does not set one",
    )
    lock_timeout_ms: int = Field(
        default=10000,
        description="Redis tournament lock expiry (multi-instance only)",
    )
    lock_acquire_timeout_ms: int = Field(
        default=5000,
        description="How long a command waits for the Redis tournament lock",
    )

    # WebSocket
    ws_max_connections: int = Field(
        default=2000,
        description="Maximum WebSocket connections per instance",
    )

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate JWT secret key length."""
        if len(v) < 32:
            raise ValueError(
                "jwt_secret_key must be at least 32 characters long"
            )
        return v

    @field_validator("upcoming_preview_size")
    @classmethod
    def validate_preview_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError("upcoming_preview_size must not be negative")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )

            origins = [o.strip() for o in self.cors_origins.split(",")]
            if "*" in origins:
                raise ValueError(
                    "CORS wildcard '*' is not allowed in production environment. "
                    "Specify explicit allowed origins."
                )

        return self

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
