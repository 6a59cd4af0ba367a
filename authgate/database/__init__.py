"""
Database connection managers for AUTHGATE.

This package provides:
- user_db: SQL storage for user accounts and their two-factor state
"""
