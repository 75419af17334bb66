"""Catalog event notifiers.

The catalog service hands every domain event to a ``Notifier`` after the
transaction that produced it has committed. Delivery problems stay here:
they are logged and recorded, never raised back into the catalog.
"""

import json
from typing import Any, Protocol
from xml.etree import ElementTree

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dairycart.domain.events import DomainEvent
from dairycart.infrastructure.config import settings
from dairycart.notifications.models import (
    JSON_CONTENT_TYPE,
    XML_CONTENT_TYPE,
    Webhook,
    WebhookExecutionLog,
)

logger = structlog.get_logger()


class Notifier(Protocol):
    """Receives committed catalog events."""

    async def notify(self, event: DomainEvent) -> None:
        ...


class InMemoryNotifier:
    """Notifier that keeps every event it receives, in order."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def notify(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[DomainEvent]:
        """Get received events of one type."""
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()


# ============================================================================
# Encoding
# ============================================================================


def encode_event(event: DomainEvent, content_type: str) -> bytes:
    """Serialize an event for a webhook body.

    Args:
        event: Event to send.
        content_type: Webhook content type; XML for "application/xml",
            JSON otherwise.

    Returns:
        Encoded request body.
    """
    data = event.to_dict()
    if content_type.lower() == XML_CONTENT_TYPE:
        root = ElementTree.Element("event")
        _append_xml(root, data)
        return ElementTree.tostring(root, encoding="utf-8")
    return json.dumps(data).encode("utf-8")


def _append_xml(parent: ElementTree.Element, value: Any) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            _append_xml(ElementTree.SubElement(parent, key), item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _append_xml(ElementTree.SubElement(parent, "item"), item)
    elif value is not None:
        parent.text = str(value).lower() if isinstance(value, bool) else str(value)


# ============================================================================
# Webhook Notifier
# ============================================================================


class WebhookNotifier:
    """Posts events to the active webhooks subscribed to their type.

    Every attempt is recorded as a WebhookExecutionLog row. A 2xx or 300
    response counts as success.

    Example usage:
        notifier = WebhookNotifier(get_session_factory())
        service = CatalogService(get_session_factory(), notifier)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            session_factory: Factory for sessions loading webhooks and
                writing execution logs.
            timeout: Request timeout in seconds (defaults to settings).
            transport: Optional httpx transport (used by tests).
        """
        self.session_factory = session_factory
        self.timeout = settings.webhook_timeout_seconds if timeout is None else timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def notify(self, event: DomainEvent) -> None:
        """Deliver an event to every subscribed webhook."""
        try:
            async with self.session_factory() as session:
                webhooks = await self._subscribers(session, event.event_type)
                if not webhooks:
                    return
                for webhook in webhooks:
                    session.add(await self._execute(webhook, event))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Could not record webhook executions",
                event_type=event.event_type,
                event_id=str(event.event_id),
                error=str(e),
            )

    async def _subscribers(self, session: AsyncSession, event_type: str) -> list[Webhook]:
        result = await session.execute(
            select(Webhook)
            .where(Webhook.event_type == event_type, Webhook.archived_on.is_(None))
            .order_by(Webhook.id)
        )
        return list(result.scalars().all())

    async def _execute(self, webhook: Webhook, event: DomainEvent) -> WebhookExecutionLog:
        execution = WebhookExecutionLog(
            webhook_id=webhook.id,
            event_type=event.event_type,
            status_code=0,
            succeeded=False,
        )
        content_type = webhook.content_type or JSON_CONTENT_TYPE
        try:
            client = await self._get_client()
            response = await client.post(
                webhook.url,
                content=encode_event(event, content_type),
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Webhook delivery failed",
                webhook_id=webhook.id,
                event_type=event.event_type,
                error=str(e),
            )
            return execution

        execution.status_code = response.status_code
        execution.succeeded = 200 <= response.status_code <= 300
        log = logger.info if execution.succeeded else logger.warning
        log(
            "Webhook executed",
            webhook_id=webhook.id,
            event_type=event.event_type,
            status_code=response.status_code,
        )
        return execution
