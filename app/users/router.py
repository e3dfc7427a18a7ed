# app/users/router.py

import math
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status, Query

from app.core.jwt import create_access_token, create_refresh_token, verify_token
from app.users.models import User
from app.users.schemas import (
    LoginRequest, TokenResponse, UserCreate, UserResponse, PaginatedUserResponse,
)
from app.users.services import UserService
from app.users.utils import get_current_user, allow_admin
from app.utils.logger import get_logger

router = APIRouter(tags=["Users"])
logger = get_logger(__name__)


def _issue_tokens(user: User) -> dict:
    claims = {"sub": user.email_address, "id": user.id}
    return {
        "access_token": create_access_token(data=claims),
        "refresh_token": create_refresh_token(data=claims),
        "token_type": "bearer",
    }


@router.post("/login", response_model=TokenResponse)
async def login(
    login_request: LoginRequest,
    user_service: UserService = Depends(),
):
    """Authenticate user and return access & refresh tokens."""
    user = await user_service.authenticate_user(login_request)

    if not user:
        logger.warning("Failed login attempt", email=login_request.email_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password."
        )

    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_access_token(
    authorization: str = Header(..., alias="Authorization"),
    user_service: UserService = Depends(),
):
    """Refresh the access token using a valid refresh token."""
    old_refresh_token = authorization.replace("Bearer ", "")
    payload = verify_token(old_refresh_token, scope="refresh")
    email = payload.get("sub")

    user = await user_service.repo.get_user_by_email(email) if email else None
    if not user or not user.is_active:
        logger.warning("Invalid refresh token attempt", email=email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token."
        )

    return _issue_tokens(user)


@router.get("/user", response_model=UserResponse)
async def get_user_me(
    current_user: User = Depends(get_current_user),
):
    """Get details of the currently authenticated user."""
    return current_user


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    admin: User = Depends(allow_admin),
    user_service: UserService = Depends(),
):
    """Create a new user (Admin only)."""
    return await user_service.create_user(user_data, created_by=admin.id)


@router.get("/users", response_model=PaginatedUserResponse, dependencies=[Depends(allow_admin)])
async def search_users(
    search: Optional[str] = Query(None, description="Search term for name or email"),
    sort_by: str = Query("name", description="Sort by field (name, email, created_on)"),
    sort_order: str = Query("asc", description="Sort order (asc, desc)"),
    skip: int = Query(0, ge=0, description="Number of records to skip for pagination"),
    limit: int = Query(10, ge=1, le=100, description="Maximum number of records to return"),
    user_service: UserService = Depends()
):
    """
    Get a paginated list of users with optional search and sorting.
    Accessible only by administrators.
    """
    users, total_items = await user_service.search_users(
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit
    )

    return {
        "items": users,
        "total_items": total_items,
        "page": (skip // limit) + 1,
        "per_page": limit,
        "total_pages": math.ceil(total_items / limit) if limit > 0 else 0,
    }
