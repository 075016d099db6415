"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


# Weak/default secrets that MUST be changed in production
WEAK_SECRETS = frozenset({
    "learnova-jwt-secret-key-2025",
    "secret",
    "password",
    "changeme",
    "default",
})


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = True

    # JWT Configuration
    # Tokens are issued by the REST backend; the gateway only verifies them.
    jwt_secret: str = "learnova-jwt-secret-key-2025"
    jwt_algorithm: str = "HS256"
    # Empty issuer/audience means the claim is not verified
    jwt_issuer: str = ""
    jwt_audience: str = ""
    jwt_access_token_expire_days: int = 7

    # User store (last-seen / online status)
    database_url: str = "sqlite:///./learnova.db"

    # Comma-separated list of allowed browser origins ("*" allows any)
    allowed_origins: str = "http://localhost:3000,http://localhost:5000"

    # Server
    ws_gateway_port: int = 5000

    # WebSocket
    ws_heartbeat_interval: int = 30  # Advertised to clients, not enforced
    ws_idle_timeout: int = 0  # Seconds without heartbeat before eviction; 0 disables
    ws_idle_sweep_interval: int = 15
    ws_max_message_size: int = 64 * 1024  # 64 KB
    ws_outbound_queue_size: int = 256  # Pending frames per connection
    ws_send_timeout: float = 5.0
    ws_max_malformed_events: int = 0  # Close after N malformed frames; 0 = never
    ws_shutdown_timeout: float = 5.0

    @property
    def allowed_origin_list(self) -> list[str]:
        """Allowed origins as a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def idle_eviction_enabled(self) -> bool:
        return self.ws_idle_timeout > 0

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that secrets are properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.jwt_secret in WEAK_SECRETS or len(self.jwt_secret) < 32:
                errors.append(
                    "JWT_SECRET must be at least 32 characters and not a default value in production"
                )

            if self.debug:
                errors.append("DEBUG must be False in production")

            if "*" in self.allowed_origin_list:
                errors.append(
                    "ALLOWED_ORIGINS must list explicit domains in production (wildcard found)"
                )

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
