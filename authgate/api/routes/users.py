"""
User Endpoints.

Registration and profile management: create, list, get, update, delete.
"""
import logging

from fastapi import APIRouter, Depends, status

from ..models import (
    ErrorResponse,
    MetaResponse,
    StatusResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from ..deps import get_settings, get_user_service
from ...auth.service import UserService
from ...auth.types import Filters
from ...utils.config import Settings
from ...utils.pagination import Meta

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Missing field"},
        409: {"model": ErrorResponse, "description": "Username already exists"},
    },
)
def create_user(
    user_data: UserCreate,
    service: UserService = Depends(get_user_service),
):
    """Register a new user. Two-factor authentication starts disabled."""
    user = service.create(
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        email=user_data.email,
        phone=user_data.phone,
        username=user_data.username,
        password=user_data.password,
    )
    return UserResponse.from_user(user)


@router.get("", response_model=UserListResponse)
def list_users(
    first_name: str = "",
    last_name: str = "",
    limit: int = 0,
    page: int = 0,
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """
    List users, newest first.

    first_name and last_name filter by case-insensitive substring.
    limit defaults to PAGINATOR_LIMIT_DEFAULT; page is 1-based.
    """
    filters = Filters(first_name=first_name, last_name=last_name)

    total = service.count(filters)
    meta = Meta.build(page, limit, total, settings.paginator_limit_default)
    users = service.get_all(filters, meta.offset, meta.limit)

    return UserListResponse(
        data=[UserResponse.from_user(user) for user in users],
        meta=MetaResponse.from_meta(meta),
    )


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
def get_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
):
    return UserResponse.from_user(service.get(user_id))


@router.patch(
    "/{user_id}",
    response_model=StatusResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Empty required field"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
def update_user(
    user_id: str,
    changes: UserUpdate,
    service: UserService = Depends(get_user_service),
):
    """Update profile fields. Omitted fields are left untouched."""
    service.update(
        user_id,
        first_name=changes.first_name,
        last_name=changes.last_name,
        email=changes.email,
        phone=changes.phone,
    )
    return StatusResponse()


@router.delete(
    "/{user_id}",
    response_model=StatusResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
def delete_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
):
    service.delete(user_id)
    logger.info(f"User {user_id} removed via API")
    return StatusResponse()
