"""Application configuration using pydantic-settings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


APP_VERSION = "0.1.0"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LockBackend(str, Enum):
    LOCAL = "local"
    REDIS = "redis"


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    url: str = Field(default="", alias="DB_URL")
    host: str = Field(default="localhost", alias="DB_HOST")
    port: int = Field(default=5432, alias="DB_PORT")
    name: str = Field(default="deployctl", alias="DB_NAME")
    user: str = Field(default="deployctl", alias="DB_USER")
    password: str = Field(default="", alias="DB_PASSWORD")
    pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    max_overflow: int = Field(default=5, alias="DB_MAX_OVERFLOW")
    pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT")

    @property
    def async_url(self) -> str:
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.name}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.async_url.startswith("sqlite")

    model_config = {"env_prefix": "DB_", "extra": "ignore", "populate_by_name": True}


class RedisSettings(BaseSettings):
    """Redis configuration for the per-service deployment lock."""

    host: str = Field(default="localhost", alias="REDIS_HOST")
    port: int = Field(default=6379, alias="REDIS_PORT")
    password: str = Field(default="", alias="REDIS_PASSWORD")
    db: int = Field(default=0, alias="REDIS_DB")
    lock_backend: LockBackend = Field(default=LockBackend.LOCAL, alias="REDIS_LOCK_BACKEND")

    @property
    def url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"

    model_config = {"env_prefix": "REDIS_", "extra": "ignore", "populate_by_name": True}


class KafkaSettings(BaseSettings):
    """Kafka configuration for lifecycle event notifications."""

    bootstrap_servers: str = Field(default="localhost:9092", alias="KAFKA_BOOTSTRAP_SERVERS")
    topic_prefix: str = Field(default="deployctl", alias="KAFKA_TOPIC_PREFIX")
    enabled: bool = Field(default=False, alias="KAFKA_ENABLED")

    model_config = {"env_prefix": "KAFKA_", "extra": "ignore", "populate_by_name": True}


class AuthSettings(BaseSettings):
    """Authentication configuration."""

    secret_key: str = Field(default="change-me-in-production", alias="AUTH_SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="AUTH_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="AUTH_TOKEN_EXPIRE_MINUTES")

    model_config = {"env_prefix": "AUTH_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    otlp_endpoint: str = Field(default="http://localhost:4317", alias="OTLP_ENDPOINT")
    service_name: str = Field(default="deployctl", alias="SERVICE_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class ControllerSettings(BaseSettings):
    """Deployment controller tuning."""

    scan_threshold: int = Field(default=5, ge=0, alias="CONTROLLER_SCAN_THRESHOLD")
    scan_timeout_seconds: float = Field(default=120.0, gt=0, alias="CONTROLLER_SCAN_TIMEOUT")
    change_timeout_seconds: float = Field(default=300.0, gt=0, alias="CONTROLLER_CHANGE_TIMEOUT")
    poll_interval_seconds: float = Field(default=5.0, gt=0, alias="CONTROLLER_POLL_INTERVAL")
    lock_ttl_seconds: int = Field(default=900, gt=0, alias="CONTROLLER_LOCK_TTL")
    history_depth: int = Field(default=100, gt=1, alias="CONTROLLER_HISTORY_DEPTH")
    notification_timeout_seconds: float = Field(default=5.0, gt=0, alias="CONTROLLER_NOTIFICATION_TIMEOUT")
    notification_buffer_size: int = Field(default=1000, gt=0, alias="CONTROLLER_NOTIFICATION_BUFFER")
    default_cluster: str = Field(default="default", alias="CONTROLLER_DEFAULT_CLUSTER")

    model_config = {"env_prefix": "CONTROLLER_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    host: str = Field(default="0.0.0.0", alias="HOST")  # noqa: S104
    port: int = Field(default=8000, alias="PORT")
    workers: int = Field(default=1, alias="WORKERS")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    controller: ControllerSettings = Field(default_factory=ControllerSettings)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
