"""Application configuration"""
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "replace-this-secret-in-production"


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    ENVIRONMENT: str = "development"

    # Flat-file store
    DATA_DIR: Path = Path("./data")

    # Session tokens
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_SECONDS: int = 8 * 60 * 60
    SESSION_MAX_AGE_SECONDS: int = 8 * 60 * 60

    # Credentials
    BCRYPT_ROUNDS: int = 12
    PRIMARY_ADMIN_USERNAME: str = "primary-admin"
    PRIMARY_ADMIN_PASSWORD: str = "ChangeMe!2026"

    # Two-factor authentication
    TOTP_ISSUER: str = "Worship Tracker"
    TOTP_ENCRYPTION_SECRET: Optional[str] = None  # falls back to JWT_SECRET
    ADMIN_2FA_ENFORCE: bool = False

    # Server
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text
    CORS_ORIGINS: str = "http://localhost:5173"
    TRUST_PROXY_HEADERS: bool = False  # Set True if behind reverse proxy

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "10/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Monitoring
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    # Audit queries
    AUDIT_MAX_SCAN_BYTES: int = 4 * 1024 * 1024

    @field_validator("PRIMARY_ADMIN_USERNAME")
    @classmethod
    def normalize_primary_admin(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def clamp_bcrypt_rounds(cls, value: int) -> int:
        # bcrypt only accepts cost factors 4..31
        return min(max(value, 4), 31)

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def totp_key_material(self) -> str:
        return self.TOTP_ENCRYPTION_SECRET or self.JWT_SECRET

    @property
    def uses_default_jwt_secret(self) -> bool:
        return self.JWT_SECRET == DEFAULT_JWT_SECRET


settings = Settings()
