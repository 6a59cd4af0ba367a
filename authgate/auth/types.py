"""
Domain types shared by the user service, the repository and the API layer.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

# Column sizes of the users table
USERNAME_MAX_LENGTH = 20
NAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 50
PHONE_MAX_LENGTH = 30


class TwoFactorStatus(str, Enum):
    """
    Enrollment state of a user's second factor.

    Stored verbatim in the users.twofa_status column; NONE is the empty string.
    """
    NONE = ""
    PENDING = "pending"
    APPROVED = "approved"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TwoFactorStatus":
        return cls((value or "").strip().lower())


class FactorStatus(str, Enum):
    """Outcome reported by a 2FA provider for a verify/check call."""
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


@dataclass
class User:
    id: str
    username: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""
    twofa_status: TwoFactorStatus = TwoFactorStatus.NONE
    twofa_code: str = ""
    twofa_active: bool = False

    @property
    def requires_second_factor(self) -> bool:
        """True when login must be completed with a 2FA challenge."""
        return self.twofa_active and self.twofa_status == TwoFactorStatus.APPROVED

    def scrubbed(self) -> "User":
        """Copy of the user without the password hash."""
        return replace(self, password="")


@dataclass
class Filters:
    """Repository query filters. Empty values are ignored."""
    first_name: str = ""
    last_name: str = ""
    username: str = ""


@dataclass
class LoginResult:
    """
    Outcome of a login step.

    Exactly one of two_factor_hash (partial token, no authorization claim)
    and token (full token) is set.
    """
    two_factor: bool
    token: Optional[str] = None
    two_factor_hash: Optional[str] = None
    status: str = "ok"


@dataclass
class TokenClaims:
    """Identity embedded in a bearer token."""
    user_id: str
    username: str
    authorized: bool


@dataclass
class Enrollment:
    """
    A factor freshly created at the 2FA provider.

    url is the provisioning URL rendered as a QR code; handle identifies the
    factor in later verify/check calls.
    """
    url: str
    handle: str
