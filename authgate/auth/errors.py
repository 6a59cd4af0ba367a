"""
Errors raised by the user service and its collaborators.

Each error carries a machine-readable code; the API layer maps the classes
to HTTP statuses in one place (authgate.api.errors).
"""


class UserServiceError(Exception):
    code = "USER_SERVICE_ERROR"
    message = "user service error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)


class FieldRequired(UserServiceError):
    code = "FIELD_REQUIRED"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field.replace('_', ' ')} is required")


class FieldTooLong(UserServiceError):
    code = "FIELD_TOO_LONG"

    def __init__(self, field: str, limit: int):
        self.field = field
        self.limit = limit
        super().__init__(f"{field.replace('_', ' ')} must be at most {limit} characters")


class InvalidPassword(UserServiceError):
    code = "INVALID_PASSWORD"
    message = "password is not acceptable"


class InvalidCredentials(UserServiceError):
    """Unknown username and wrong password are reported identically."""
    code = "INVALID_CREDENTIALS"
    message = "invalid username or password"


class CodeRequired(UserServiceError):
    code = "CODE_REQUIRED"
    message = "code is required"


class InvalidCode(UserServiceError):
    code = "INVALID_CODE"
    message = "the code entered is invalid"


class InvalidToken(UserServiceError):
    code = "INVALID_TOKEN"
    message = "invalid user information"


class Unauthorized(UserServiceError):
    code = "UNAUTHORIZED"
    message = "unauthorized user"


class AlreadyEnrolled(UserServiceError):
    code = "TWOFA_ALREADY_ENROLLED"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"the 2FA status is {status}")


class ProviderError(UserServiceError):
    """The 2FA provider could not be reached or answered unexpectedly."""
    code = "TWOFA_PROVIDER_ERROR"
    message = "2FA provider error"


class EnrollmentFailed(ProviderError):
    code = "TWOFA_ENROLLMENT_FAILED"
    message = "error during the 2FA creation"


class TokenIssuanceFailed(UserServiceError):
    code = "TOKEN_ISSUANCE_FAILED"
    message = "could not issue token"


class NotFound(UserServiceError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"user '{user_id}' doesn't exist")


class UserAlreadyExists(UserServiceError):
    code = "USER_ALREADY_EXISTS"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"user '{username}' already exists")
