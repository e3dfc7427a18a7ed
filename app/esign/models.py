# app/esign/models.py

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from app.core.db import Base
from app.esign.dto import EVENT_NAME_MAX_LENGTH, PROVIDER_KEY_MAX_LENGTH
from app.esign.schemas import EventKind, SignatureStatus, WebhookOutcome


def _enum_column(enum_cls, length: int = 20):
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


class SignableMixin:
    """
    Columns shared by every record that is driven through the provider:
    the lifecycle status, the provider-issued key and the verbatim last
    provider response.
    """

    @declared_attr
    def status(cls) -> Mapped[SignatureStatus]:
        return mapped_column(
            _enum_column(SignatureStatus),
            default=SignatureStatus.DRAFT,
            nullable=False,
            index=True,
        )

    @declared_attr
    def provider_key(cls) -> Mapped[Optional[str]]:
        # Set once, together with the move to "sent"
        return mapped_column(String(255), unique=True, index=True, nullable=True)

    @declared_attr
    def provider_raw_payload(cls) -> Mapped[Optional[str]]:
        return mapped_column(Text, nullable=True)


class WebhookEvent(Base):
    """
    Audit trail of every webhook delivery and what reconciliation did with it.
    """
    __tablename__ = "webhook_events"
    __table_args__ = (
        UniqueConstraint("provider_key", "event_name", "payload_digest", name="uq_webhook_events_delivery"),
        Index("ix_webhook_events_key_received", "provider_key", "received_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    provider_key: Mapped[Optional[str]] = mapped_column(String(PROVIDER_KEY_MAX_LENGTH), nullable=True)
    event_name: Mapped[str] = mapped_column(String(EVENT_NAME_MAX_LENGTH), nullable=False, default="")
    event_kind: Mapped[EventKind] = mapped_column(_enum_column(EventKind), nullable=False)
    resource_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    resource_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    outcome: Mapped[WebhookOutcome] = mapped_column(_enum_column(WebhookOutcome), nullable=False)
    previous_status: Mapped[Optional[SignatureStatus]] = mapped_column(_enum_column(SignatureStatus), nullable=True)
    new_status: Mapped[Optional[SignatureStatus]] = mapped_column(_enum_column(SignatureStatus), nullable=True)
    payload_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    raw_payload: Mapped[str] = mapped_column(Text, nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return (
            f"<WebhookEvent(id={self.id}, provider_key='{self.provider_key}', "
            f"event='{self.event_name}', outcome='{self.outcome}')>"
        )
