"""
Tests for the HTTP API.

Endpoints run against the in-memory service from conftest.
"""
import logging

import pytest

from authgate.api.deps import get_db
from authgate.api.errors import error_status
from authgate.api.main import app
from authgate.auth.errors import (
    AlreadyEnrolled,
    CodeRequired,
    EnrollmentFailed,
    FieldRequired,
    FieldTooLong,
    InvalidCredentials,
    InvalidToken,
    NotFound,
    ProviderError,
    TokenIssuanceFailed,
    Unauthorized,
)
from authgate.database.user_db import UserDB
from authgate.utils.log import RequestIdFilter, request_id_var


ALICE = {
    "first_name": "Alice",
    "last_name": "Liddell",
    "email": "alice@example.com",
    "phone": "555",
    "username": "alice",
    "password": "secret1",
}


def register(client, **overrides):
    body = dict(ALICE, **overrides)
    response = client.post("/users", json=body)
    assert response.status_code == 201
    return response.json()


def login_token(client, username="alice", password="secret1"):
    response = client.post("/users/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return response.json()["token"]


class TestUserEndpoints:
    """Tests for the /users resource."""

    def test_create_user(self, client):
        data = register(client)

        assert data["id"]
        assert data["username"] == "alice"
        assert "password" not in data
        assert "twofa_code" not in data

    def test_create_user_missing_field(self, client):
        response = client.post("/users", json=dict(ALICE, last_name=""))

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "FIELD_REQUIRED"
        assert body["detail"] == "last name is required"

    def test_create_duplicate_user(self, client):
        register(client)
        response = client.post("/users", json=ALICE)
        assert response.status_code == 409

    def test_create_user_username_too_long(self, client, repo):
        response = client.post("/users", json=dict(ALICE, username="u" * 21))

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "username" in body["detail"]
        assert repo.users == {}

    def test_update_user_name_too_long(self, client):
        user_id = register(client)["id"]

        response = client.patch(f"/users/{user_id}", json={"first_name": "A" * 51})

        assert response.status_code == 422
        assert client.get(f"/users/{user_id}").json()["first_name"] == "Alice"

    def test_get_user(self, client):
        user_id = register(client)["id"]

        response = client.get(f"/users/{user_id}")

        assert response.status_code == 200
        assert response.json()["first_name"] == "Alice"

    def test_get_missing_user(self, client):
        response = client.get("/users/missing")

        assert response.status_code == 404
        assert response.json() == {
            "error": "Not Found",
            "detail": "user 'missing' doesn't exist",
            "code": "USER_NOT_FOUND",
        }

    def test_update_user(self, client):
        user_id = register(client)["id"]

        response = client.patch(f"/users/{user_id}", json={"phone": "777"})

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert client.get(f"/users/{user_id}").json()["phone"] == "777"

    def test_update_rejects_empty_first_name(self, client):
        user_id = register(client)["id"]
        response = client.patch(f"/users/{user_id}", json={"first_name": ""})
        assert response.status_code == 400

    def test_delete_user(self, client):
        user_id = register(client)["id"]

        assert client.delete(f"/users/{user_id}").status_code == 200
        assert client.get(f"/users/{user_id}").status_code == 404
        assert client.delete(f"/users/{user_id}").status_code == 404


class TestListUsers:
    """Tests for listing with filters and pagination."""

    @pytest.fixture
    def three_users(self, client):
        register(client, username="alice", first_name="Alice")
        register(client, username="bob", first_name="Bob")
        register(client, username="alina", first_name="Alina")

    def test_default_limit_from_settings(self, client, three_users):
        body = client.get("/users").json()

        assert len(body["data"]) == 2
        assert body["meta"] == {"page": 1, "per_page": 2, "page_count": 2, "total_count": 3}

    def test_second_page(self, client, three_users):
        body = client.get("/users", params={"page": 2, "limit": 2}).json()

        assert len(body["data"]) == 1
        assert body["meta"]["page"] == 2

    def test_page_past_end_is_clamped(self, client, three_users):
        body = client.get("/users", params={"page": 9, "limit": 2}).json()
        assert body["meta"]["page"] == 2

    def test_first_name_filter(self, client, three_users):
        body = client.get("/users", params={"first_name": "ali", "limit": 10}).json()

        assert {u["username"] for u in body["data"]} == {"alice", "alina"}
        assert body["meta"]["total_count"] == 2

    def test_empty_list(self, client):
        body = client.get("/users").json()
        assert body["data"] == []
        assert body["meta"]["total_count"] == 0


class TestLoginEndpoints:
    """Tests for /users/login and /users/login/2fa."""

    def test_login_without_2fa(self, client):
        register(client)

        response = client.post("/users/login", json={"username": "alice", "password": "secret1"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["two_factor"] is False
        assert body["token"]
        assert "two_factor_hash" not in body

    def test_login_wrong_password(self, client):
        register(client)
        response = client.post("/users/login", json={"username": "alice", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    def test_login_missing_fields(self, client):
        response = client.post("/users/login", json={"username": "alice"})
        assert response.status_code == 400

    def test_two_factor_flow(self, client):
        register(client)
        token = login_token(client)

        response = client.post("/users/2fa", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["qr"].endswith(".png")

        # Confirm the pending factor with the full token
        response = client.post(
            "/users/login/2fa",
            json={"code": "123456"},
            headers={"Authorization": token},
        )
        assert response.status_code == 200

        response = client.post("/users/login", json={"username": "alice", "password": "secret1"})
        body = response.json()
        assert body["two_factor"] is True
        assert "token" not in body
        partial = body["two_factor_hash"]

        # Partial token cannot enroll
        response = client.post("/users/2fa", headers={"Authorization": partial})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

        response = client.post(
            "/users/login/2fa",
            json={"code": "123456"},
            headers={"Authorization": partial},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["two_factor"] is True
        assert body["token"]

    def test_wrong_code(self, client):
        register(client)
        token = login_token(client)
        client.post("/users/2fa", headers={"Authorization": token})

        response = client.post(
            "/users/login/2fa",
            json={"code": "000000"},
            headers={"Authorization": token},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CODE"

    def test_empty_code(self, client):
        register(client)
        token = login_token(client)

        response = client.post("/users/login/2fa", json={"code": ""}, headers={"Authorization": token})
        assert response.status_code == 400

    def test_enroll_twice_after_approval(self, client):
        register(client)
        token = login_token(client)
        client.post("/users/2fa", headers={"Authorization": token})
        client.post("/users/login/2fa", json={"code": "123456"}, headers={"Authorization": token})

        response = client.post("/users/2fa", headers={"Authorization": token})

        assert response.status_code == 409
        assert response.json()["detail"] == "the 2FA status is approved"

    def test_missing_token(self, client):
        response = client.post("/users/2fa")
        assert response.status_code == 401

    def test_enrollment_provider_failure(self, client, provider):
        register(client)
        token = login_token(client)
        provider.fail_create = True

        response = client.post("/users/2fa", headers={"Authorization": token})

        assert response.status_code == 500
        assert response.json()["code"] == "TWOFA_ENROLLMENT_FAILED"


class TestHealth:
    def test_health_reports_database(self, client, settings):
        db = UserDB(settings.database)
        app.dependency_overrides[get_db] = lambda: db

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["database"].startswith("healthy")
        assert body["services"]["twofa_provider"] == "twilio"
        db.engine.dispose()

    def test_response_headers(self, client):
        response = client.get("/users")
        assert "X-Request-ID" in response.headers
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestErrorMapping:
    """Tests for the service error to HTTP status table."""

    @pytest.mark.parametrize("error,expected", [
        (FieldRequired("username"), 400),
        (FieldTooLong("username", 20), 400),
        (CodeRequired(), 400),
        (InvalidCredentials(), 401),
        (InvalidToken(), 401),
        (Unauthorized(), 401),
        (NotFound("u1"), 404),
        (AlreadyEnrolled("approved"), 409),
        (ProviderError(), 500),
        (EnrollmentFailed(), 500),
        (TokenIssuanceFailed(), 500),
    ])
    def test_status(self, error, expected):
        assert error_status(error)[0] == expected


class TestRequestIdLogging:
    def test_filter_uses_current_request_id(self):
        record = logging.LogRecord("authgate", logging.INFO, __file__, 1, "msg", None, None)
        token = request_id_var.set("abc123")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "abc123"

    def test_filter_outside_request(self):
        record = logging.LogRecord("authgate", logging.INFO, __file__, 1, "msg", None, None)
        RequestIdFilter().filter(record)
        assert record.request_id == "-"

    def test_request_id_header_is_echoed(self, client):
        response = client.get("/users", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
