"""Configuration management for the voting API service."""
from typing import Literal, Optional
from urllib.parse import quote

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Service configuration
    SERVICE_NAME: str = "evs-voting-api"
    API_VERSION: str = "v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Storage backend: "postgres" in production, "memory" for local runs
    STORAGE_BACKEND: Literal["postgres", "memory"] = "postgres"

    # PostgreSQL configuration. DATABASE_URL wins over the individual parts.
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "election_db"
    POSTGRES_USER: str = "election_user"
    POSTGRES_PASSWORD: str = "election_pass"
    POSTGRES_SSL: Literal["disable", "prefer", "require"] = "prefer"
    POSTGRES_CREATE_SCHEMA: bool = True

    # Connection pool
    POSTGRES_POOL_MIN_SIZE: int = 2
    POSTGRES_POOL_MAX_SIZE: int = 10
    POSTGRES_COMMAND_TIMEOUT: float = 10.0
    POSTGRES_ACQUIRE_TIMEOUT: float = 5.0

    # Credential hashing (bcrypt cost factor, 2^rounds iterations)
    BCRYPT_ROUNDS: int = 10

    # Allowed candidate labels. Empty accepts any non-blank label.
    CANDIDATES: list[str] = []

    # Redis voted cache (optional fast path)
    REDIS_ENABLED: bool = False
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # Rate limiting
    RATE_LIMIT: str = "100/second"
    RATE_LIMIT_ENABLED: bool = True

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    @property
    def postgres_dsn(self) -> str:
        """Generate PostgreSQL connection string."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{quote(self.POSTGRES_USER)}:{quote(self.POSTGRES_PASSWORD)}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        """Generate Redis connection URL."""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def api_prefix(self) -> str:
        return f"/api/{self.API_VERSION}"


settings = Settings()
