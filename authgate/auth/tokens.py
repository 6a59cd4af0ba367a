"""
Bearer token creation and validation.

Tokens are self-contained JWTs carrying the user id (sub), the username and
an "authorized" claim. A token without the claim is the partial token handed
out after the password step of a two-factor login: it identifies the user for
the code challenge but grants nothing else.
"""
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

import jwt

from .errors import InvalidToken, TokenIssuanceFailed
from .types import TokenClaims
from ..utils.config import TokenConfig

logger = logging.getLogger(__name__)


class TokenIssuer(Protocol):
    def create(self, user_id: str, username: str, authorized: bool, ttl_seconds: int) -> str:
        ...

    def check(self, token: str) -> TokenClaims:
        ...


class JWTTokenIssuer:
    """
    HMAC-signed JWT issuer.

    Usage:
        issuer = JWTTokenIssuer(TokenConfig(secret="..."))
        token = issuer.create(user.id, user.username, authorized=True, ttl_seconds=600)
        claims = issuer.check(token)
    """

    def __init__(self, config: TokenConfig):
        if not config.secret:
            raise ValueError("token signing secret is required")
        self.secret = config.secret
        self.algorithm = config.algorithm

    def create(self, user_id: str, username: str, authorized: bool, ttl_seconds: int) -> str:
        """
        Create a signed token.

        Raises:
            TokenIssuanceFailed: If the payload cannot be signed.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "username": username,
            "authorized": authorized,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
        }
        try:
            return jwt.encode(payload, self.secret, algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error(f"Token signing failed for user {user_id}: {e}")
            raise TokenIssuanceFailed(str(e)) from e

    def check(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Raises:
            InvalidToken: If the token is malformed, tampered with or expired.
        """
        if not token:
            raise InvalidToken("token is required")
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as e:
            raise InvalidToken("token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected token: {e}")
            raise InvalidToken() from e

        return TokenClaims(
            user_id=payload.get("sub") or "",
            username=payload.get("username") or "",
            authorized=payload.get("authorized") is True,
        )


def extract_token(header_value: str) -> str:
    """Accept both a bare token and the "Bearer <token>" form."""
    if not header_value:
        return ""
    value = header_value.strip()
    scheme, _, rest = value.partition(" ")
    if rest and scheme.lower() == "bearer":
        return rest.strip()
    return value
