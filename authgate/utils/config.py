"""
Application configuration for AUTHGATE.

All settings are read from the environment once, in Settings.from_env(),
and handed to the components that need them. Nothing below the API layer
reads os.environ directly.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Optional

from .secrets import get_secret, get_required_secret

logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """Connection settings for the user database."""
    url: str
    pool_size: int = 10
    max_overflow: int = 20

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        url = get_secret("DATABASE_URL")
        if not url:
            host = os.getenv("POSTGRES_HOST", "localhost")
            port = os.getenv("POSTGRES_PORT", "5432")
            db = os.getenv("POSTGRES_DB", "authgate")
            user = os.getenv("POSTGRES_USER", "authgate_user")
            password = get_secret("POSTGRES_PASSWORD", "")
            url = f"postgresql://{user}:{password}@{host}:{port}/{db}"
        return cls(url=url)


@dataclass
class TokenConfig:
    """Signing settings for bearer tokens."""
    secret: str
    algorithm: str = "HS256"

    @classmethod
    def from_env(cls) -> "TokenConfig":
        return cls(
            secret=get_required_secret("JWT_KEY"),
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        )


@dataclass
class TwoFactorConfig:
    """
    Second factor settings.

    provider selects the implementation: "twilio" talks to Twilio Verify,
    "local" keeps TOTP secrets in the service's own factor store.
    qr_url_template is formatted with the factor secret ({secret}).
    """
    provider: str = "local"
    account_sid: str = ""
    auth_token: str = ""
    service_sid: str = ""
    friendly_name: str = "AUTHGATE"
    qr_url_template: str = ""
    qr_dir: str = "./files"
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "TwoFactorConfig":
        return cls(
            provider=os.getenv("TWOFA_PROVIDER", "local").lower(),
            account_sid=get_secret("TWILIO_ACCOUNT_SID", ""),
            auth_token=get_secret("TWILIO_AUTH_TOKEN", ""),
            service_sid=get_secret("TWILIO_SERVICE_SID", ""),
            friendly_name=os.getenv("TWILIO_FRIENDLY_NAME", "AUTHGATE"),
            qr_url_template=os.getenv("TWILIO_QR", ""),
            qr_dir=os.getenv("QR_DIR", "./files"),
            timeout=float(os.getenv("TWOFA_TIMEOUT", "10")),
        )


@dataclass
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0

    @classmethod
    def from_env(cls) -> "RedisConfig":
        return cls(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=get_secret("REDIS_PASSWORD", "") or None,
            db=int(os.getenv("REDIS_DB", "0")),
        )


@dataclass
class Settings:
    """Top-level settings tree."""
    database: DatabaseConfig
    token: TokenConfig
    twofa: TwoFactorConfig = field(default_factory=TwoFactorConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    paginator_limit_default: int = 10
    bcrypt_rounds: int = 12

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            database=DatabaseConfig.from_env(),
            token=TokenConfig.from_env(),
            twofa=TwoFactorConfig.from_env(),
            redis=RedisConfig.from_env(),
            paginator_limit_default=int(os.getenv("PAGINATOR_LIMIT_DEFAULT", "10")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        )
        logger.info(f"Settings loaded (2FA provider: {settings.twofa.provider})")
        return settings
