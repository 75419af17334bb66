"""SQLAlchemy models for webhook subscriptions and delivery logs."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dairycart.infrastructure.database import Base

JSON_CONTENT_TYPE = "application/json"
XML_CONTENT_TYPE = "application/xml"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Webhook(Base):
    """A subscriber URL for one catalog event type.

    Attributes:
        id: Surrogate key.
        url: Endpoint receiving the POST.
        event_type: Event type subscribed to (e.g. "variant_created").
        content_type: Body encoding, JSON unless "application/xml".
        archived_on: Archive timestamp, None while active.
    """

    __tablename__ = "webhooks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    content_type: Mapped[str] = mapped_column(
        String(100), nullable=False, default=JSON_CONTENT_TYPE
    )
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    archived_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Webhook {self.id}: {self.event_type} -> {self.url}>"


class WebhookExecutionLog(Base):
    """One delivery attempt of an event to a webhook."""

    __tablename__ = "webhook_execution_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    webhook_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("webhooks.id"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    executed_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<WebhookExecutionLog {self.id}: webhook={self.webhook_id} status={self.status_code}>"
