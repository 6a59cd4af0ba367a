"""
User service: registration, password login and the two-factor flow.

Two-factor state per user (users.twofa_status):

    NONE --enroll--> PENDING --verify ok--> APPROVED
                     PENDING --verify fails--> PENDING
                     APPROVED --check ok/fails--> APPROVED
                     APPROVED --enroll--> rejected (AlreadyEnrolled)

A login for a user whose factor is APPROVED returns a short-lived partial
token without the "authorized" claim. It can only be presented back to
login_2fa, which exchanges it plus a valid code for a full token.
"""
import logging
from typing import List, Optional

from .errors import (
    AlreadyEnrolled,
    CodeRequired,
    EnrollmentFailed,
    FieldRequired,
    FieldTooLong,
    InvalidCode,
    InvalidCredentials,
    InvalidPassword,
    InvalidToken,
    ProviderError,
    Unauthorized,
)
from .mfa import QRWriter
from .passwords import DEFAULT_ROUNDS, hash_password, verify_password
from .tokens import TokenIssuer
from .twofa import TwoFactorProvider
from .types import (
    EMAIL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    PHONE_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
    FactorStatus,
    Filters,
    LoginResult,
    TwoFactorStatus,
    User,
)
from ..database.user_db import UserRepository

logger = logging.getLogger(__name__)

# Token lifetimes in seconds
PARTIAL_TOKEN_TTL = 60
LOGIN_TOKEN_TTL = 600
TWO_FACTOR_TOKEN_TTL = 3000

MAX_LENGTHS = {
    "first_name": NAME_MAX_LENGTH,
    "last_name": NAME_MAX_LENGTH,
    "email": EMAIL_MAX_LENGTH,
    "phone": PHONE_MAX_LENGTH,
    "username": USERNAME_MAX_LENGTH,
}


def check_lengths(**fields) -> None:
    """
    Raises:
        FieldTooLong: A value does not fit its users table column.
    """
    for name, value in fields.items():
        if value and len(value) > MAX_LENGTHS[name]:
            raise FieldTooLong(name, MAX_LENGTHS[name])


class UserService:
    """
    Orchestrates the repository, the token issuer and the 2FA provider.

    Usage:
        service = UserService(repo, issuer, provider, QRCodeWriter("./files"))
        result = service.login("alice", "secret1")
        if result.two_factor:
            user = service.get_user_by_token(result.two_factor_hash, check_authorized=False)
            result = service.login_2fa(user, "123456")
    """

    def __init__(
        self,
        repo: UserRepository,
        issuer: TokenIssuer,
        twofa: TwoFactorProvider,
        qr_writer: QRWriter,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ):
        self.repo = repo
        self.issuer = issuer
        self.twofa = twofa
        self.qr_writer = qr_writer
        self.bcrypt_rounds = bcrypt_rounds

    # ==========================================
    # Registration and profile
    # ==========================================

    def create(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        username: str,
        password: str,
    ) -> User:
        for name, value in (
            ("first_name", first_name),
            ("last_name", last_name),
            ("username", username),
            ("password", password),
        ):
            if not value:
                raise FieldRequired(name)
        check_lengths(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            username=username,
        )

        try:
            password_hash = hash_password(password, rounds=self.bcrypt_rounds)
        except ValueError as e:
            raise InvalidPassword(str(e)) from e

        user = User(
            id="",
            username=username,
            first_name=first_name,
            last_name=last_name,
            email=email or "",
            phone=phone or "",
            password=password_hash,
        )
        self.repo.create(user)
        return user.scrubbed()

    def get(self, user_id: str) -> User:
        return self.repo.get(user_id).scrubbed()

    def get_all(self, filters: Filters, offset: int, limit: int) -> List[User]:
        return [user.scrubbed() for user in self.repo.get_all(filters, offset, limit)]

    def count(self, filters: Filters) -> int:
        return self.repo.count(filters)

    def update(
        self,
        user_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> None:
        if first_name is not None and first_name == "":
            raise FieldRequired("first_name")
        if last_name is not None and last_name == "":
            raise FieldRequired("last_name")
        check_lengths(first_name=first_name, last_name=last_name, email=email, phone=phone)

        self.repo.update(
            user_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
        )

    def delete(self, user_id: str) -> None:
        self.repo.delete(user_id)

    # ==========================================
    # Authentication
    # ==========================================

    def login(self, username: str, password: str) -> LoginResult:
        """
        Verify username and password.

        Returns a full token, or a partial token when the user has an
        approved second factor.

        Raises:
            InvalidCredentials: Unknown username or wrong password.
            TokenIssuanceFailed: The issuer could not sign the token.
        """
        users = self.repo.get_all(Filters(username=username), 0, 1)
        if not users:
            logger.warning("Login failed: unknown username")
            raise InvalidCredentials()

        user = users[0]
        if not verify_password(password, user.password):
            logger.warning(f"Login failed: wrong password for user {user.id}")
            raise InvalidCredentials()

        if user.requires_second_factor:
            partial = self.issuer.create(user.id, user.username, False, PARTIAL_TOKEN_TTL)
            logger.info(f"User {user.id} passed password step, awaiting 2FA code")
            return LoginResult(two_factor=True, two_factor_hash=partial)

        token = self.issuer.create(user.id, user.username, True, LOGIN_TOKEN_TTL)
        logger.info(f"User {user.id} logged in")
        return LoginResult(two_factor=False, token=token)

    def get_user_by_token(self, token: str, check_authorized: bool) -> User:
        """
        Resolve the user a bearer token was issued for.

        Args:
            token: Full or partial token.
            check_authorized: Reject partial tokens.

        Raises:
            InvalidToken: The token does not decode to a user id.
            Unauthorized: check_authorized is set and the token is partial.
            NotFound: The user no longer exists.
        """
        claims = self.issuer.check(token)
        if not claims.user_id:
            raise InvalidToken()
        if check_authorized and not claims.authorized:
            raise Unauthorized()

        return self.get(claims.user_id)

    def login_2fa(self, user: User, code: str) -> LoginResult:
        """
        Complete a login (or a first enrollment) with a one-time code.

        A PENDING factor is confirmed with the provider's verify call and
        moves to APPROVED; an APPROVED factor is challenged with check and
        stays APPROVED.

        Raises:
            CodeRequired: Empty code.
            InvalidCode: The provider rejected the code, or the user has no factor.
            ProviderError: The provider could not be reached.
            TokenIssuanceFailed: The issuer could not sign the token.
        """
        if not code:
            raise CodeRequired()

        if user.twofa_status == TwoFactorStatus.PENDING:
            if self.twofa.verify(user.id, code, user.twofa_code) != FactorStatus.APPROVED:
                logger.warning(f"2FA verification rejected for user {user.id}")
                raise InvalidCode()

            user.twofa_status = TwoFactorStatus.APPROVED
            user.twofa_active = True
            self.repo.update(
                user.id,
                twofa_status=user.twofa_status,
                twofa_code=user.twofa_code,
                twofa_active=user.twofa_active,
            )
            logger.info(f"2FA approved for user {user.id}")

        elif user.twofa_status == TwoFactorStatus.APPROVED:
            if self.twofa.check(user.id, code, user.twofa_code) != FactorStatus.APPROVED:
                logger.warning(f"2FA challenge rejected for user {user.id}")
                raise InvalidCode()

        else:
            logger.warning(f"2FA code sent for user {user.id} without an enrolled factor")
            raise InvalidCode()

        token = self.issuer.create(user.id, user.username, True, TWO_FACTOR_TOKEN_TTL)
        return LoginResult(two_factor=user.twofa_active, token=token)

    def create_2fa(self, user: User) -> str:
        """
        Enroll a new TOTP factor for the user.

        The factor is stored as PENDING until the first successful
        login_2fa. The provider call and the state update are not atomic: a
        failure after the provider call leaves an orphaned factor there.

        Returns:
            Path of the rendered QR code.

        Raises:
            AlreadyEnrolled: The user's factor is already APPROVED.
            EnrollmentFailed: The provider or the QR rendering failed.
        """
        if user.twofa_status == TwoFactorStatus.APPROVED:
            raise AlreadyEnrolled(user.twofa_status.value)

        try:
            enrollment = self.twofa.create(user.id)
        except ProviderError as e:
            logger.error(f"2FA enrollment failed for user {user.id}: {e}")
            raise EnrollmentFailed(str(e)) from e

        user.twofa_code = enrollment.handle
        user.twofa_active = True
        user.twofa_status = TwoFactorStatus.PENDING
        self.repo.update(
            user.id,
            twofa_status=user.twofa_status,
            twofa_code=user.twofa_code,
            twofa_active=user.twofa_active,
        )
        logger.info(f"2FA enrollment started for user {user.id}")

        try:
            return self.qr_writer.write(user.id, enrollment.url)
        except OSError as e:
            logger.error(f"QR rendering failed for user {user.id}: {e}")
            raise EnrollmentFailed(f"could not render QR code: {e}") from e
