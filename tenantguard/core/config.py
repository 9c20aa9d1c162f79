"""Application configuration"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Tenant Guard API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/tenantguard"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # External identity provider
    # WHY: The principal of every request is asserted by the identity
    # provider's signed token; this service only verifies and reads it.
    IDP_JWT_SECRET: str
    IDP_JWT_ALGORITHM: str = "HS256"
    IDP_JWT_AUDIENCE: Optional[str] = None
    IDP_PRINCIPAL_CLAIM: str = "sub"

    # Platform admin registry
    # 0 disables caching (every check reads the singleton row)
    PLATFORM_ADMIN_CACHE_TTL_SECONDS: int = 300

    # Membership lifecycle
    INVITATION_EXPIRY_DAYS: int = 7

    # Security monitoring
    SECURITY_METRICS_WINDOW_DAYS: int = 30
    SUSPICIOUS_LOOKBACK_HOURS: int = 24
    SUSPICIOUS_FAILED_ACCESS_THRESHOLD: int = 5
    SUSPICIOUS_HIGH_VOLUME_READ_THRESHOLD: int = 1000

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
