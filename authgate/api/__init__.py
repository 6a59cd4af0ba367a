"""
AUTHGATE REST API.

FastAPI-based REST API for user accounts and two-factor login.
"""
from .main import app, create_app

__all__ = ["app", "create_app"]
