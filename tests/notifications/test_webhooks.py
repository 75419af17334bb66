"""Tests for webhook delivery of catalog events."""

import json
from datetime import datetime, timezone
from xml.etree import ElementTree

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select

from dairycart.catalog.service import CatalogService
from dairycart.domain.events import VariantArchived, VariantCreated
from dairycart.notifications.models import (
    XML_CONTENT_TYPE,
    Webhook,
    WebhookExecutionLog,
)
from dairycart.notifications.webhooks import WebhookNotifier, encode_event


@pytest.fixture
def event() -> VariantCreated:
    return VariantCreated(
        aggregate_id="1",
        aggregate_type="product_root",
        root_id=1,
        product_id=5,
        sku="tshirt-red-s",
        option_summary="Color: Red, Size: S",
        value_ids=(1, 3),
    )


class Receiver:
    """Collects requests and answers with a fixed status code."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)


async def _add_webhooks(session_factory, *webhooks: Webhook) -> list[int]:
    async with session_factory() as session:
        session.add_all(webhooks)
        await session.commit()
        return [w.id for w in webhooks]


async def _logs(session_factory) -> list[WebhookExecutionLog]:
    async with session_factory() as session:
        result = await session.execute(
            select(WebhookExecutionLog).order_by(WebhookExecutionLog.id)
        )
        return list(result.scalars().all())


@pytest_asyncio.fixture
async def notifier_factory(session_factory):
    notifiers = []

    def build(handler) -> WebhookNotifier:
        notifier = WebhookNotifier(session_factory, transport=httpx.MockTransport(handler))
        notifiers.append(notifier)
        return notifier

    yield build
    for notifier in notifiers:
        await notifier.close()


class TestEncodeEvent:
    """Tests for webhook body encoding."""

    def test_json(self, event) -> None:
        data = json.loads(encode_event(event, "application/json"))
        assert data["event_type"] == "variant_created"
        assert data["payload"]["value_ids"] == [1, 3]

    def test_xml(self, event) -> None:
        root = ElementTree.fromstring(encode_event(event, XML_CONTENT_TYPE))
        assert root.tag == "event"
        assert root.findtext("event_type") == "variant_created"
        assert root.findtext("payload/sku") == "tshirt-red-s"
        assert [item.text for item in root.findall("payload/value_ids/item")] == ["1", "3"]


class TestWebhookNotifier:
    """Tests for WebhookNotifier."""

    @pytest.mark.asyncio
    async def test_delivers_to_subscribers(self, session_factory, notifier_factory, event) -> None:
        receiver = Receiver()
        webhook_ids = await _add_webhooks(
            session_factory,
            Webhook(url="https://hooks.example.com/json", event_type="variant_created"),
            Webhook(
                url="https://hooks.example.com/xml",
                event_type="variant_created",
                content_type=XML_CONTENT_TYPE,
            ),
            Webhook(url="https://hooks.example.com/other", event_type="variant_archived"),
        )

        await notifier_factory(receiver).notify(event)

        assert [str(r.url) for r in receiver.requests] == [
            "https://hooks.example.com/json",
            "https://hooks.example.com/xml",
        ]
        assert receiver.requests[0].headers["Content-Type"] == "application/json"
        assert json.loads(receiver.requests[0].content)["payload"]["product_id"] == 5
        assert receiver.requests[1].content.startswith(b"<event>")

        logs = await _logs(session_factory)
        assert [(log.webhook_id, log.succeeded, log.status_code) for log in logs] == [
            (webhook_ids[0], True, 200),
            (webhook_ids[1], True, 200),
        ]

    @pytest.mark.asyncio
    async def test_error_status_is_recorded(self, session_factory, notifier_factory, event) -> None:
        await _add_webhooks(
            session_factory,
            Webhook(url="https://hooks.example.com/down", event_type="variant_created"),
        )

        await notifier_factory(Receiver(503)).notify(event)

        logs = await _logs(session_factory)
        assert len(logs) == 1
        assert logs[0].succeeded is False
        assert logs[0].status_code == 503

    @pytest.mark.asyncio
    async def test_transport_failure_does_not_raise(
        self, session_factory, notifier_factory, event
    ) -> None:
        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        await _add_webhooks(
            session_factory,
            Webhook(url="https://hooks.example.com/gone", event_type="variant_created"),
        )

        await notifier_factory(unreachable).notify(event)

        logs = await _logs(session_factory)
        assert [(log.succeeded, log.status_code) for log in logs] == [(False, 0)]

    @pytest.mark.asyncio
    async def test_archived_webhooks_are_skipped(
        self, session_factory, notifier_factory, event
    ) -> None:
        receiver = Receiver()
        await _add_webhooks(
            session_factory,
            Webhook(
                url="https://hooks.example.com/retired",
                event_type="variant_created",
                archived_on=datetime.now(timezone.utc),
            ),
        )

        await notifier_factory(receiver).notify(event)

        assert receiver.requests == []
        assert await _logs(session_factory) == []

    @pytest.mark.asyncio
    async def test_without_subscribers(self, session_factory, notifier_factory) -> None:
        receiver = Receiver()
        await notifier_factory(receiver).notify(VariantArchived(product_id=5, sku="tshirt-red-s"))
        assert receiver.requests == []

    @pytest.mark.asyncio
    async def test_catalog_service_delivers_after_commit(
        self, session_factory, notifier_factory, test_settings, tshirt_data
    ) -> None:
        receiver = Receiver()
        await _add_webhooks(
            session_factory,
            Webhook(url="https://hooks.example.com/variants", event_type="variant_created"),
        )
        service = CatalogService(session_factory, notifier_factory(receiver), test_settings)

        await service.create_root(tshirt_data)

        skus = [json.loads(r.content)["payload"]["sku"] for r in receiver.requests]
        assert skus == ["tshirt-red-s", "tshirt-red-m", "tshirt-blue-s", "tshirt-blue-m"]
