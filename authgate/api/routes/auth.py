"""
Authentication Endpoints.

Password login, the second-factor challenge and second-factor enrollment.
"""
import logging

from fastapi import APIRouter, Depends

from ..models import (
    Create2FAResponse,
    ErrorResponse,
    Login2FARequest,
    LoginResponse,
    UserLogin,
)
from ..deps import get_bearer_token, get_user_service
from ...auth.errors import FieldRequired
from ...auth.service import UserService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["Authentication"])


@router.post(
    "/login",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse, "description": "Missing username or password"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
def login(
    credentials: UserLogin,
    service: UserService = Depends(get_user_service),
):
    """
    Authenticate with username and password.

    Without an approved second factor the response carries a full token.
    Otherwise it carries two_factor_hash, a one-minute partial token to send
    as the Authorization header of /users/login/2fa.
    """
    if not credentials.username:
        raise FieldRequired("username")
    if not credentials.password:
        raise FieldRequired("password")

    result = service.login(credentials.username, credentials.password)
    return LoginResponse.from_result(result)


@router.post(
    "/login/2fa",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse, "description": "Missing code"},
        401: {"model": ErrorResponse, "description": "Invalid token or code"},
    },
)
def login_2fa(
    request: Login2FARequest,
    token: str = Depends(get_bearer_token),
    service: UserService = Depends(get_user_service),
):
    """
    Exchange a (partial or full) token and a TOTP code for a full token.

    The first successful call after enrollment also activates the factor.
    """
    user = service.get_user_by_token(token, check_authorized=False)
    result = service.login_2fa(user, request.code)
    return LoginResponse.from_result(result)


@router.post(
    "/2fa",
    response_model=Create2FAResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing, invalid or partial token"},
        409: {"model": ErrorResponse, "description": "2FA already enrolled"},
    },
)
def create_2fa(
    token: str = Depends(get_bearer_token),
    service: UserService = Depends(get_user_service),
):
    """
    Start second-factor enrollment.

    Requires a full token. Returns the path of a QR code to scan with an
    authenticator app; the factor becomes active after the first successful
    /users/login/2fa call.
    """
    user = service.get_user_by_token(token, check_authorized=True)
    qr_path = service.create_2fa(user)
    return Create2FAResponse(qr=qr_path)
