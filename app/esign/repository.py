# app/esign/repository.py

from typing import Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.esign.models import WebhookEvent
from app.esign.schemas import ListFilters, SortOrder, WebhookOutcome
from app.utils.logger import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")


class SignableRepository(Generic[ModelT]):
    """
    Data Access Layer shared by documents and auto signature terms.

    Persists whatever it is given; status rules live in the workflow
    services. Subclasses set ``model``, ``search_columns`` and
    ``sortable_columns``.
    """

    model: Type[ModelT]
    search_columns: Sequence = ()
    sortable_columns: Dict[str, object] = {}

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, record: ModelT) -> ModelT:
        """Insert a record and assign its id."""
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def update(self, record: ModelT) -> ModelT:
        """Persist all mutable fields of a record."""
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def delete(self, record: ModelT) -> None:
        await self.db.delete(record)
        await self.db.flush()

    async def get_by_id(self, record_id: int, for_update: bool = False) -> Optional[ModelT]:
        """
        Fetch a record by id. With ``for_update`` the row is locked
        (SELECT ... FOR UPDATE) until the transaction ends and the identity
        map copy is refreshed from the locked row.
        """
        stmt = select(self.model).where(self.model.id == record_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_provider_key(self, provider_key: str, for_update: bool = False) -> Optional[ModelT]:
        stmt = select(self.model).where(self.model.provider_key == provider_key)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list(self, filters: ListFilters) -> Tuple[List[ModelT], int]:
        """
        Filter, sort and paginate records.
        Returns the page of records and the total count of matches.
        """
        stmt = select(self.model)

        if filters.status is not None:
            stmt = stmt.where(self.model.status == filters.status)

        if filters.search and self.search_columns:
            search_term = f"%{filters.search.lower()}%"
            stmt = stmt.where(or_(*[func.lower(col).like(search_term) for col in self.search_columns]))

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total_count = (await self.db.execute(count_stmt)).scalar_one()

        sort_column = self.sortable_columns.get(filters.sort_by, self.model.id)
        if filters.sort_order == SortOrder.DESC:
            stmt = stmt.order_by(sort_column.desc(), self.model.id.desc())
        else:
            stmt = stmt.order_by(sort_column.asc(), self.model.id.asc())

        stmt = stmt.offset((filters.page - 1) * filters.per_page).limit(filters.per_page)

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total_count


class WebhookEventRepository:
    """Data Access Layer for the webhook audit trail."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, event: WebhookEvent) -> WebhookEvent:
        self.db.add(event)
        await self.db.flush()
        await self.db.refresh(event)
        return event

    async def update(self, event: WebhookEvent) -> WebhookEvent:
        self.db.add(event)
        await self.db.flush()
        await self.db.refresh(event)
        return event

    async def get_by_id(self, event_id: int, for_update: bool = False) -> Optional[WebhookEvent]:
        stmt = select(WebhookEvent).where(WebhookEvent.id == event_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_delivery(
        self, provider_key: Optional[str], event_name: str, payload_digest: str
    ) -> Optional[WebhookEvent]:
        """Find an earlier delivery with the same key, event name and body digest."""
        key_clause = (
            WebhookEvent.provider_key.is_(None) if provider_key is None
            else WebhookEvent.provider_key == provider_key
        )
        stmt = select(WebhookEvent).where(
            key_clause,
            WebhookEvent.event_name == event_name,
            WebhookEvent.payload_digest == payload_digest,
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list(
        self,
        provider_key: Optional[str] = None,
        outcome: Optional[WebhookOutcome] = None,
        event_name: Optional[str] = None,
        resource_type: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[WebhookEvent], int]:
        stmt = select(WebhookEvent)
        if provider_key:
            stmt = stmt.where(WebhookEvent.provider_key == provider_key)
        if event_name:
            stmt = stmt.where(WebhookEvent.event_name == event_name)
        if resource_type:
            stmt = stmt.where(WebhookEvent.resource_type == resource_type)
        if outcome is not None:
            stmt = stmt.where(WebhookEvent.outcome == outcome)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total_count = (await self.db.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(WebhookEvent.received_at.desc(), WebhookEvent.id.desc())
        stmt = stmt.offset((page - 1) * per_page).limit(per_page)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total_count
