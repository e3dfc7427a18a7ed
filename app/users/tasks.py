# app/users/tasks.py

"""
Celery tasks for the users module.
Consumes user provisioning events from the message bus.
"""

import asyncio
from typing import Any, Dict, Optional

from celery import shared_task
from pydantic import ValidationError

from app.core.db import AsyncSessionLocal, async_engine
from app.users.repository import UserRepository
from app.users.schemas import UserCreatedEvent
from app.users.services import UserService
from app.utils.logger import get_logger

logger = get_logger(__name__)


async def handle_user_created(payload: Dict[str, Any], session_factory=AsyncSessionLocal) -> Optional[int]:
    """
    Apply a user-created event. Returns the new user's id, or None when the
    event was acknowledged without changes (duplicate email).
    """
    event = UserCreatedEvent.model_validate(payload)

    async with session_factory() as db:
        try:
            service = UserService(repo=UserRepository(db))
            user = await service.create_user_from_event(event)
            await db.commit()
            return user.id if user else None
        except Exception as e:
            await db.rollback()
            logger.error("Error applying user event", email=event.email, error=str(e))
            raise


async def _run_in_fresh_loop(payload: Dict[str, Any]) -> Optional[int]:
    """Run one event and empty the connection pool before the task's loop closes."""
    try:
        return await handle_user_created(payload)
    finally:
        await async_engine.dispose()


@shared_task(name="users.create_from_event")
def create_user_from_event(payload: Dict[str, Any]):
    """
    Celery task that provisions a user from an event payload of the form
    {"name", "email", "password", "is_admin", "active"}.
    """
    try:
        return asyncio.run(_run_in_fresh_loop(payload))
    except ValidationError as e:
        # Malformed events cannot succeed on redelivery
        logger.error("Discarding malformed user event", errors=e.errors())
        return None
