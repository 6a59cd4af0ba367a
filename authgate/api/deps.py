"""
FastAPI Dependencies for AUTHGATE API.

Provides:
- Settings (read once from the environment)
- Database connection
- Redis client for the local factor store
- Token issuer, 2FA provider and QR writer
- The user service
"""
import logging
from functools import lru_cache
from typing import Optional

import redis
from fastapi import Depends, Header

from ..auth.mfa import FactorStore, QRCodeWriter
from ..auth.service import UserService
from ..auth.tokens import JWTTokenIssuer, extract_token
from ..auth.twofa import TwoFactorProvider, build_provider
from ..database.user_db import UserDB, get_user_db
from ..utils.config import Settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_settings() -> Settings:
    """Application settings, loaded on first use."""
    return Settings.from_env()


# ============================================
# Redis Client
# ============================================

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get Redis client singleton.

    Returns None if Redis is not configured or unavailable.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    config = get_settings().redis
    try:
        client = redis.Redis(
            host=config.host,
            port=config.port,
            password=config.password,
            db=config.db,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        client.ping()
        logger.info(f"Redis connected: {config.host}:{config.port}")
        _redis_client = client
        return _redis_client
    except redis.ConnectionError as e:
        logger.warning(f"Redis connection failed: {e}. Factor store will use in-memory fallback.")
        return None


# ============================================
# Service Dependencies
# ============================================

def get_db(settings: Settings = Depends(get_settings)) -> UserDB:
    """Get database connection."""
    return get_user_db(settings.database)


_twofa_provider: Optional[TwoFactorProvider] = None


def get_twofa_provider() -> TwoFactorProvider:
    """2FA provider singleton (the local provider keeps factors across requests)."""
    global _twofa_provider
    if _twofa_provider is None:
        config = get_settings().twofa
        store = FactorStore(get_redis_client()) if config.provider == "local" else None
        _twofa_provider = build_provider(config, store)
    return _twofa_provider


def get_user_service(
    db: UserDB = Depends(get_db),
    twofa: TwoFactorProvider = Depends(get_twofa_provider),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(
        repo=db,
        issuer=JWTTokenIssuer(settings.token),
        twofa=twofa,
        qr_writer=QRCodeWriter(settings.twofa.qr_dir),
        bcrypt_rounds=settings.bcrypt_rounds,
    )


# ============================================
# Request Helpers
# ============================================

async def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    """Token from the Authorization header, with or without the Bearer scheme."""
    return extract_token(authorization or "")
