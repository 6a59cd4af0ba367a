"""
AUTHGATE - user accounts with password and TOTP two-factor login.

This package provides the user service, its SQL repository, token issuing,
second-factor providers and the REST API built on top of them.
"""

__version__ = "0.1.0"
