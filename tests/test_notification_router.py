from __future__ import annotations

import json
from datetime import datetime

import pytest

from app.schemas.notification import NotificationEvent
from app.schemas.realtime import DeliveryFilter, UserType
from app.services.realtime import NotificationRouter
from app.services.registry import ConnectionRegistry
from tests.helpers import FakeConnection


def _bound(registry, connection, **identity):
    entry = registry.add(connection)
    registry.bind(entry, **identity)
    return entry


@pytest.mark.asyncio
async def test_new_order_reaches_only_matching_restaurant_owners():
    registry = ConnectionRegistry()
    owner_a, owner_b, customer = FakeConnection(), FakeConnection(), FakeConnection()
    _bound(registry, owner_a, user_type=UserType.RESTAURANT_OWNER, restaurant_id=5)
    _bound(registry, owner_b, user_type=UserType.RESTAURANT_OWNER, restaurant_id=5)
    _bound(registry, customer, user_id=42, user_type=UserType.CUSTOMER)

    result = await NotificationRouter(registry).send(
        NotificationEvent(type="new_order", title="x", message="y"),
        DeliveryFilter(restaurant_id=5, user_type=UserType.RESTAURANT_OWNER),
    )

    assert result.delivered == 2
    assert result.matched == 2
    assert len(owner_a.sent) == 1
    assert len(owner_b.sent) == 1
    assert customer.sent == []


@pytest.mark.asyncio
async def test_sent_frame_carries_id_timestamp_and_unread_flag():
    registry = ConnectionRegistry()
    connection = FakeConnection()
    _bound(registry, connection, user_id=1)

    result = await NotificationRouter(registry).send(
        NotificationEvent(type="order_status_update", title="Update", message="Ready", data={"orderId": 9}),
        DeliveryFilter(user_id=1),
    )

    frame = json.loads(connection.sent[0])
    assert frame["id"] == result.event.id
    assert frame["id"].startswith("notif_")
    assert frame["read"] is False
    assert frame["data"] == {"orderId": 9}
    datetime.fromisoformat(frame["timestamp"].replace("Z", "+00:00"))


@pytest.mark.asyncio
async def test_existing_id_is_kept_and_read_is_reset():
    registry = ConnectionRegistry()
    connection = FakeConnection()
    _bound(registry, connection, user_id=1)

    await NotificationRouter(registry).send(
        NotificationEvent(type="custom", title="t", message="m", id="fixed-id", read=True),
        DeliveryFilter(user_id=1),
    )

    frame = json.loads(connection.sent[0])
    assert frame["id"] == "fixed-id"
    assert frame["read"] is False


@pytest.mark.asyncio
async def test_failing_connection_does_not_stop_fan_out():
    registry = ConnectionRegistry()
    broken = FakeConnection(fail_with=RuntimeError("socket closed"))
    healthy = FakeConnection()
    _bound(registry, broken, restaurant_id=5)
    _bound(registry, healthy, restaurant_id=5)

    result = await NotificationRouter(registry).send(
        NotificationEvent(type="new_order", title="x", message="y"),
        DeliveryFilter(restaurant_id=5),
    )

    assert result.matched == 2
    assert result.delivered == 1
    assert len(healthy.sent) == 1


@pytest.mark.asyncio
async def test_connection_in_closing_state_is_skipped():
    registry = ConnectionRegistry()
    closing = FakeConnection()
    await closing.close()
    _bound(registry, closing, user_id=4)

    result = await NotificationRouter(registry).send(
        NotificationEvent(type="order_status_update", title="x", message="y"),
        DeliveryFilter(user_id=4),
    )

    assert result.matched == 1
    assert result.delivered == 0
    assert closing.sent == []


@pytest.mark.asyncio
async def test_connection_removed_mid_dispatch_is_skipped():
    registry = ConnectionRegistry()
    later = FakeConnection()

    class ClosesNeighbour(FakeConnection):
        async def send_text(self, payload: str) -> None:
            await super().send_text(payload)
            registry.remove(later_entry)

    first = ClosesNeighbour()
    _bound(registry, first, restaurant_id=5)
    later_entry = _bound(registry, later, restaurant_id=5)

    result = await NotificationRouter(registry).send(
        NotificationEvent(type="new_order", title="x", message="y"),
        DeliveryFilter(restaurant_id=5),
    )

    assert result.delivered == 1
    assert len(first.sent) == 1
    assert later.sent == []


@pytest.mark.asyncio
async def test_no_matching_connections_is_not_an_error():
    registry = ConnectionRegistry()

    result = await NotificationRouter(registry).send(
        NotificationEvent(type="new_order", title="x", message="y"),
        DeliveryFilter(user_id=99),
    )

    assert result.delivered == 0
    assert result.matched == 0
    assert result.event.id is not None


@pytest.mark.asyncio
async def test_events_arrive_in_send_order_per_connection():
    registry = ConnectionRegistry()
    connection = FakeConnection()
    _bound(registry, connection, user_id=1)
    router = NotificationRouter(registry)

    for index in range(3):
        await router.send(
            NotificationEvent(type="order_status_update", title=f"t{index}", message="m"),
            DeliveryFilter(user_id=1),
        )

    assert [json.loads(frame)["title"] for frame in connection.sent] == ["t0", "t1", "t2"]
