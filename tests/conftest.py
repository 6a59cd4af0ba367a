"""
Pytest configuration and shared fixtures for AUTHGATE tests.

This module provides:
- In-memory user repository
- Fake 2FA provider and QR writer
- A user service wired to the fakes
- A FastAPI test client using that service
"""
from dataclasses import replace
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from authgate.api.main import app
from authgate.api.deps import get_settings, get_user_service
from authgate.auth.errors import NotFound, ProviderError, UserAlreadyExists
from authgate.auth.service import UserService
from authgate.auth.tokens import JWTTokenIssuer
from authgate.auth.types import Enrollment, FactorStatus, Filters, User
from authgate.utils.config import DatabaseConfig, Settings, TokenConfig, TwoFactorConfig


# ============================================
# Fakes
# ============================================

class InMemoryUserRepository:
    """Dict-backed repository; reads return copies like a real database."""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self._next_id = 1

    def create(self, user: User) -> None:
        if any(u.username == user.username for u in self.users.values()):
            raise UserAlreadyExists(user.username)
        if not user.id:
            user.id = f"user-{self._next_id}"
            self._next_id += 1
        self.users[user.id] = replace(user)

    def _matching(self, filters: Filters) -> List[User]:
        result = []
        for user in self.users.values():
            if filters.first_name and filters.first_name.lower() not in user.first_name.lower():
                continue
            if filters.last_name and filters.last_name.lower() not in user.last_name.lower():
                continue
            if filters.username and filters.username != user.username:
                continue
            result.append(user)
        return result

    def get_all(self, filters: Filters, offset: int, limit: int) -> List[User]:
        return [replace(u) for u in self._matching(filters)[offset:offset + limit]]

    def get(self, user_id: str) -> User:
        if user_id not in self.users:
            raise NotFound(user_id)
        return replace(self.users[user_id])

    def delete(self, user_id: str) -> None:
        if self.users.pop(user_id, None) is None:
            raise NotFound(user_id)

    def update(self, user_id: str, **fields) -> None:
        if user_id not in self.users:
            raise NotFound(user_id)
        values = {k: v for k, v in fields.items() if v is not None}
        self.users[user_id] = replace(self.users[user_id], **values)

    def count(self, filters: Filters) -> int:
        return len(self._matching(filters))


class FakeTwoFactorProvider:
    """
    Provider that approves a fixed set of codes.

    Records every call in .calls as (method, user_id, code, handle).
    """

    def __init__(self, handle: str = "F123", approved_codes=("123456",)):
        self.handle = handle
        self.approved_codes = set(approved_codes)
        self.calls = []
        self.fail_create = False

    def create(self, user_id: str) -> Enrollment:
        self.calls.append(("create", user_id, None, None))
        if self.fail_create:
            raise ProviderError("provider unavailable")
        return Enrollment(url=f"otpauth://totp/AUTHGATE:{user_id}?secret=SECRET", handle=self.handle)

    def _status(self, code: str) -> FactorStatus:
        return FactorStatus.APPROVED if code in self.approved_codes else FactorStatus.REJECTED

    def verify(self, user_id: str, code: str, handle: str) -> FactorStatus:
        self.calls.append(("verify", user_id, code, handle))
        return self._status(code)

    def check(self, user_id: str, code: str, handle: str) -> FactorStatus:
        self.calls.append(("check", user_id, code, handle))
        return self._status(code)


class FakeQRWriter:
    def __init__(self):
        self.written = []
        self.fail = False

    def write(self, user_id: str, url: str) -> str:
        if self.fail:
            raise OSError("disk full")
        self.written.append((user_id, url))
        return f"./files/{user_id}.png"


# ============================================
# Service Fixtures
# ============================================

TEST_JWT_KEY = "test-signing-key-0123456789abcdef0123456789"


@pytest.fixture
def repo():
    return InMemoryUserRepository()


@pytest.fixture
def provider():
    return FakeTwoFactorProvider()


@pytest.fixture
def qr_writer():
    return FakeQRWriter()


@pytest.fixture
def issuer():
    return JWTTokenIssuer(TokenConfig(secret=TEST_JWT_KEY))


@pytest.fixture
def service(repo, issuer, provider, qr_writer):
    # Minimum bcrypt cost keeps the suite fast
    return UserService(repo, issuer, provider, qr_writer, bcrypt_rounds=4)


@pytest.fixture
def alice(service):
    """Registered user without a second factor."""
    return service.create(
        first_name="Alice",
        last_name="Liddell",
        email="alice@example.com",
        phone="",
        username="alice",
        password="secret1",
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'users.db'}"),
        token=TokenConfig(secret=TEST_JWT_KEY),
        twofa=TwoFactorConfig(provider="twilio", service_sid="VA000", qr_dir=str(tmp_path)),
        paginator_limit_default=2,
        bcrypt_rounds=4,
    )


@pytest.fixture
def client(service, settings):
    """Test client whose endpoints use the fake-backed service."""
    app.dependency_overrides[get_user_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: settings

    yield TestClient(app)

    app.dependency_overrides.clear()
