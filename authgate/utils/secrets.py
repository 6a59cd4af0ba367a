"""
Secret lookup for AUTHGATE.

A secret NAME is resolved from, in order:
1. the file named by NAME_FILE (Docker/Kubernetes mounted secrets)
2. the NAME environment variable
3. /run/secrets/<name> (Docker's default secrets mount)

Usage:
    from authgate.utils.secrets import get_secret

    auth_token = get_secret("TWILIO_AUTH_TOKEN", "")
"""
import os
import logging
from typing import Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

SECRETS_DIR = "/run/secrets"


def _read_secret_file(path: str) -> Optional[str]:
    try:
        with open(path, 'r') as f:
            return f.read().strip()
    except OSError as e:
        logger.warning(f"Failed to read secret file {path}: {e}")
        return None


def _candidates(name: str) -> Iterator[Tuple[str, Optional[str]]]:
    """(source, value) pairs in lookup order; files are read lazily."""
    file_path = os.environ.get(f"{name}_FILE")
    if file_path and os.path.isfile(file_path):
        yield "file", _read_secret_file(file_path)

    yield "environment", os.environ.get(name) or None

    mounted = os.path.join(SECRETS_DIR, name.lower())
    if os.path.isfile(mounted):
        yield "secrets mount", _read_secret_file(mounted)


def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Resolve a secret, falling back to default when no source has it.

    An empty environment variable counts as unset.
    """
    for source, value in _candidates(name):
        if value is not None:
            logger.debug(f"Secret {name} read from {source}")
            return value
    return default


def get_required_secret(name: str) -> str:
    """
    Raises:
        ValueError: If no source provides the secret.
    """
    value = get_secret(name)
    if value is None:
        raise ValueError(f"Secret {name} is not configured (set {name} or {name}_FILE)")
    return value


def mask_secret(secret: str, visible_chars: int = 4) -> str:
    """Shorten a secret for log output, e.g. "AC12...9f0e"."""
    if not secret or len(secret) <= visible_chars * 2:
        return "***"
    return secret[:visible_chars] + "..." + secret[-visible_chars:]
