"""
Shared utilities for AUTHGATE.

This package provides:
- Configuration management
- Secrets management
- Pagination helpers
- Logging setup
"""
from .secrets import get_secret, get_required_secret, mask_secret
from .config import Settings
from .pagination import Meta
from .log import setup_logging

__all__ = ["get_secret", "get_required_secret", "mask_secret", "Settings", "Meta", "setup_logging"]
