"""
Admin Aggregation Service
Centralized Configuration Management

Pydantic settings with environment variable support, validation and type safety.
Every section can be overridden through the environment or a local `.env` file.
"""

from functools import lru_cache
from typing import Optional, List, Set
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="admin_service", alias="POSTGRES_DB", description="Database name")
    user: str = Field(default="admin", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    enabled: bool = Field(default=True, description="Use Redis for stats caching")
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=50, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    stats_ttl_seconds: int = Field(default=60, description="TTL for cached upstream stats")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class KafkaSettings(BaseSettings):
    """Order event stream configuration"""

    model_config = SettingsConfigDict(env_prefix="KAFKA_")

    bootstrap_servers: str = Field(default="localhost:9092", description="Kafka bootstrap servers")
    consumer_group: str = Field(default="admin-dashboard-stats", description="Durable consumer group")
    consumer_enabled: bool = Field(default=False, description="Start the consumer inside the API process")
    auto_offset_reset: str = Field(default="earliest", description="Auto offset reset policy")
    session_timeout_ms: int = Field(default=30000, description="Session timeout")
    heartbeat_interval_ms: int = Field(default=10000, description="Heartbeat interval")

    topic_order_events: str = Field(default="admin_order_events", description="Order lifecycle topic")
    routing_key: str = Field(default="order_updates", description="Message key the consumer accepts")
    max_retries: int = Field(default=3, description="Redeliveries before dead-lettering")
    retry_backoff_ms: int = Field(default=1000, description="Base redelivery backoff")


class UpstreamSettings(BaseSettings):
    """Merchant and order microservice endpoints"""

    model_config = SettingsConfigDict(env_prefix="")

    merchant_api_base_url: str = Field(default="http://localhost:3004", alias="MERCHANT_API_BASE_URL")
    merchant_api_key: SecretStr = Field(default="", alias="MERCHANT_API_KEY")
    order_api_base_url: str = Field(default="http://localhost:3003", alias="ORDER_API_BASE_URL")
    order_api_key: SecretStr = Field(default="", alias="ORDER_API_KEY")

    timeout_seconds: float = Field(default=10.0, alias="UPSTREAM_TIMEOUT", description="Per-request timeout")
    max_retries: int = Field(default=3, alias="UPSTREAM_MAX_RETRIES", description="Retries after the first attempt")
    backoff_base_seconds: float = Field(default=1.0, alias="UPSTREAM_BACKOFF_BASE", description="Backoff base delay")
    backoff_max_seconds: float = Field(default=30.0, alias="UPSTREAM_BACKOFF_MAX", description="Backoff ceiling")


class SecuritySettings(BaseSettings):
    """Security and Authentication Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    jwt_secret_key: SecretStr = Field(default="jwt-secret-change-me", alias="JWT_SECRET_KEY", description="Access token secret")
    jwt_refresh_secret_key: SecretStr = Field(
        default="jwt-refresh-secret-change-me", alias="JWT_REFRESH_SECRET_KEY", description="Refresh token secret"
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM", description="JWT algorithm")
    access_token_minutes: int = Field(default=15, alias="JWT_ACCESS_MINUTES", description="Access token lifetime")
    refresh_token_days: int = Field(default=7, alias="JWT_REFRESH_DAYS", description="Refresh token lifetime")
    password_reset_minutes: int = Field(default=60, alias="PASSWORD_RESET_MINUTES", description="Reset token lifetime")
    password_hash_iterations: int = Field(default=390000, alias="PASSWORD_HASH_ITERATIONS")

    # Rate limiting
    rate_limit_requests: int = Field(default=100, alias="RATE_LIMIT_REQUESTS", description="Rate limit requests")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS", description="Rate limit window")

    # CORS
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://admin.nile.ng",
            "https://admin.nile.ng",
        ],
        description="Allowed CORS origins"
    )


class EmailSettings(BaseSettings):
    """Outbound SMTP configuration"""

    model_config = SettingsConfigDict(env_prefix="SMTP_")

    enabled: bool = Field(default=True, description="Send emails")
    host: str = Field(default="sandbox.smtp.mailtrap.io", description="SMTP host")
    port: int = Field(default=2525, description="SMTP port")
    username: str = Field(default="", description="SMTP username")
    password: SecretStr = Field(default="", description="SMTP password")
    use_tls: bool = Field(default=True, description="Issue STARTTLS")
    from_email: str = Field(default="noreply@nile-admin.com", alias="FROM_EMAIL")
    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")


class OrderStatusSettings(BaseSettings):
    """Status sets used to classify upstream orders"""

    model_config = SettingsConfigDict(env_prefix="")

    successful_statuses: Set[str] = Field(
        default={"COMPLETED", "SHIPPED", "DELIVERED"},
        alias="SUCCESSFUL_ORDER_STATUSES",
        description="Order statuses counted as successful",
    )
    paid_payment_statuses: Set[str] = Field(
        default={"PAID"},
        alias="PAID_PAYMENT_STATUSES",
        description="Payment statuses counted towards store sales",
    )

    @field_validator("successful_statuses", "paid_payment_statuses")
    @classmethod
    def normalize_statuses(cls, v: Set[str]) -> Set[str]:
        """Statuses are compared upper-cased"""
        return {s.strip().upper() for s in v if s.strip()}


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED", description="Expose /metrics")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="admin-service", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=9000, alias="API_PORT", description="API port")
    api_prefix: str = Field(default="/api", alias="API_PREFIX", description="Route prefix")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    order_status: OrderStatusSettings = Field(default_factory=OrderStatusSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
