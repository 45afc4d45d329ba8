"""
Bookshelf API — User and Token Route Handlers
==============================================

Endpoints:
    POST /api/v1/users        201  register
    GET  /api/v1/users/me     200  the authenticated user
    POST /api/v1/auth/token   200  exchange email + password for a bearer token
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends

from bookshelf.dependencies import get_user_service, require_user
from bookshelf.schemas.common import ErrorResponse
from bookshelf.schemas.user import TokenRequest, TokenResponse, UserCreate, UserResponse
from bookshelf.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Users"])


@router.post(
    "/users",
    status_code=201,
    response_model=UserResponse,
    responses={
        400: {"description": "Invalid body", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Register a user",
)
async def register_user(
    payload: UserCreate,
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    return await users.register(payload)


@router.get(
    "/users/me",
    response_model=UserResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Get the authenticated user",
)
async def get_me(
    user_id: UUID = Depends(require_user),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    return await users.get(user_id)


@router.post(
    "/auth/token",
    response_model=TokenResponse,
    responses={401: {"description": "Wrong email or password", "model": ErrorResponse}},
    tags=["Auth"],
    summary="Issue an access token",
)
async def issue_token(
    payload: TokenRequest,
    users: UserService = Depends(get_user_service),
) -> TokenResponse:
    return await users.authenticate(payload.email, payload.password)
