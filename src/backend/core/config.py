"""
Core configuration module.
Organized into separate settings classes for better maintainability.
"""

from typing import List, Optional

from pydantic import Field, PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """API configuration settings."""

    app_name: str = "Records Center"
    app_version: str = "1.0.0"
    debug: bool = False
    api_v1_prefix: str = "/api/v1"

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class DatabaseSettings(BaseSettings):
    """Database configuration settings.

    For horizontal scaling with multiple backend instances:
    - Reduce pool_size per instance (total = pool_size * num_instances)
    - Set pool_recycle lower to avoid stale connections
    """

    url: PostgresDsn
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800  # 30 minutes
    echo: bool = False

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Get synchronous database URL for Alembic."""
        return str(self.url).replace("+asyncpg", "")


class RedisSettings(BaseSettings):
    """Redis configuration settings for the event stream transport."""

    url: str = "redis://localhost:6379/0"
    max_connections: int = 30
    socket_keepalive: bool = True
    socket_timeout: int = 60
    socket_connect_timeout: int = 10
    retry_on_timeout: bool = True

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def redis_config(self) -> dict:
        """Get Redis connection configuration."""
        return {
            "max_connections": self.max_connections,
            "socket_keepalive": self.socket_keepalive,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_connect_timeout,
            "retry_on_timeout": self.retry_on_timeout,
        }


class BroadcastSettings(BaseSettings):
    """Real-time broadcast configuration.

    Events are appended to Redis Streams and fanned out to browsers by the
    websocket relay. When disabled (or Redis is unreachable) every publish
    reports failure and callers fall back to queued delivery.
    """

    enabled: bool = Field(default=True, description="Enable Redis Streams broadcasting")
    stream_prefix: str = Field(default="events", description="Prefix for stream names")
    stream_max_length: int = Field(
        default=10000,
        ge=100,
        description="Approximate MAXLEN applied on XADD",
    )

    model_config = SettingsConfigDict(
        env_prefix="BROADCAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class SecuritySettings(BaseSettings):
    """Security and JWT configuration settings."""

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    jwt_secret_key: Optional[str] = None
    jwt_issuer: str = "records-center"
    jwt_audience: str = "records-center-api"

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def jwt_secret_key_property(self) -> str:
        """Get JWT secret key, falling back to SECRET_KEY if not specified."""
        return self.jwt_secret_key or self.secret_key


class CORSSettings(BaseSettings):
    """CORS configuration settings - read directly from .env file."""

    origins: List[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("origins", mode="before")
    @classmethod
    def parse_origins(cls, v):
        """Parse origins from JSON array string or comma-separated list."""
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v


class MeetingSettings(BaseSettings):
    """Meeting signaling configuration settings.

    Sessions that stop sending heartbeats are ended by the background
    cleanup job so they do not appear active forever.
    """

    session_timeout_minutes: int = Field(
        default=5,
        ge=1,
        description="Minutes without heartbeat before a session is considered stale",
    )
    cleanup_interval_seconds: int = Field(
        default=60,
        ge=10,
        description="How often the stale-session sweep runs",
    )
    message_rate_limit: str = Field(
        default="30/minute",
        description="Rate limit applied to posting chat messages",
    )

    model_config = SettingsConfigDict(
        env_prefix="MEETING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class AccessSettings(BaseSettings):
    """Incident report access grant settings."""

    default_page_size: int = 15
    max_page_size: int = 100
    max_extension_days: int = 365

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class MonitoringSettings(BaseSettings):
    """Monitoring configuration settings."""

    enable_metrics: bool = True

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = "INFO"
    enable_file_logging: bool = True
    log_dir: str = "logs"
    max_size: int = 10_485_760  # 10MB
    backup_count: int = 5
    enable_console_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def log_config(self) -> dict:
        """Get logging configuration."""
        return {
            "level": self.level,
            "enable_file_logging": self.enable_file_logging,
            "log_dir": self.log_dir,
            "max_file_size": self.max_size,
            "backup_count": self.backup_count,
            "enable_console": self.enable_console_logging,
        }


class Settings(BaseSettings):
    """Main application settings."""

    api: APISettings = APISettings()
    database: DatabaseSettings = DatabaseSettings()
    redis: RedisSettings = RedisSettings()
    broadcast: BroadcastSettings = BroadcastSettings()
    security: SecuritySettings = SecuritySettings()
    cors: CORSSettings = CORSSettings()
    meeting: MeetingSettings = MeetingSettings()
    access: AccessSettings = AccessSettings()
    monitoring: MonitoringSettings = MonitoringSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
