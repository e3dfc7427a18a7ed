# app/users/repository.py

from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.users.models import User


class UserRepository:
    """
    Data Access Layer for the User model.
    Handles all database interactions.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Fetch a user by email address."""
        stmt = select(User).where(func.lower(User.email_address) == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Fetch a user by ID."""
        stmt = select(User).where(User.id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, user: User) -> User:
        """Create a new user."""
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update(self, user: User) -> User:
        """Update an existing user."""
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def search_users(
        self, search: Optional[str], sort_by: str, sort_order: str, skip: int, limit: int
    ) -> Tuple[List[User], int]:
        """
        Searches, sorts, and paginates users from the database.

        Returns a tuple containing the list of users and the total count of matching users.
        """
        stmt = select(User)

        if search:
            search_term = f"%{search.lower()}%"
            stmt = stmt.filter(
                or_(
                    func.lower(User.name).like(search_term),
                    func.lower(User.email_address).like(search_term),
                )
            )

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total_count = (await self.db.execute(count_stmt)).scalar_one()

        # Define valid sortable columns to prevent arbitrary column sorting
        sortable_columns = {
            "name": User.name,
            "email": User.email_address,
            "created_on": User.created_on,
        }
        sort_column = sortable_columns.get(sort_by, User.name)

        if sort_order.lower() == "desc":
            stmt = stmt.order_by(sort_column.desc())
        else:
            stmt = stmt.order_by(sort_column.asc())

        stmt = stmt.offset(skip).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total_count
