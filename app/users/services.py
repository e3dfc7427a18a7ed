# app/users/services.py

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_async_db
from app.users.models import User
from app.users.repository import UserRepository
from app.users.schemas import LoginRequest, UserCreate, UserCreatedEvent
from app.utils.security import generate_password, get_password_hash, verify_password
from app.utils.logger import get_logger

logger = get_logger(__name__)


def get_user_repository(db: AsyncSession = Depends(get_async_db)) -> UserRepository:
    """Dependency to get UserRepository instance."""
    return UserRepository(db)


class UserService:
    """
    Business logic layer for user-related operations.
    Depends on the UserRepository for data access.
    """

    def __init__(self, repo: UserRepository = Depends(get_user_repository)):
        self.repo = repo

    async def authenticate_user(self, login_data: LoginRequest) -> Optional[User]:
        """Authenticate user by email and password."""
        user = await self.repo.get_user_by_email(login_data.email_id)

        if not user or not user.is_active or not verify_password(login_data.password, user.password):
            logger.warning("Authentication failed for email", email=login_data.email_id)
            return None

        user.last_login = datetime.now(timezone.utc)
        await self.repo.update(user)
        return user

    async def create_user(self, user_data: UserCreate, created_by: Optional[int] = None) -> User:
        """Create a user from the admin API."""
        existing = await self.repo.get_user_by_email(user_data.email_address)
        if existing:
            logger.warning("Attempt to create duplicate user", email=user_data.email_address)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A user with this email already exists."
            )

        user = User(
            name=user_data.name,
            email_address=user_data.email_address,
            password=get_password_hash(user_data.password),
            is_admin=user_data.is_admin,
            is_active=True,
            created_by=created_by,
        )
        user = await self.repo.create(user)
        logger.info("User created", user_id=user.id, email=user.email_address)
        return user

    async def create_user_from_event(self, event: UserCreatedEvent) -> Optional[User]:
        """
        Create a user from a bus event. Replayed events for an email that
        already exists are acknowledged without changes and return None.
        """
        existing = await self.repo.get_user_by_email(event.email)
        if existing:
            logger.info("User event ignored, email already registered", email=event.email, user_id=existing.id)
            return None

        user = User(
            name=event.name,
            email_address=event.email,
            password=get_password_hash(event.password or generate_password()),
            is_admin=event.is_admin,
            is_active=event.active,
        )
        user = await self.repo.create(user)
        logger.info("User created from event", user_id=user.id, email=user.email_address)
        return user

    async def search_users(
        self, search: Optional[str], sort_by: str, sort_order: str, skip: int, limit: int
    ) -> Tuple[List[User], int]:
        """Calls the repository to search for users."""
        return await self.repo.search_users(
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit
        )
