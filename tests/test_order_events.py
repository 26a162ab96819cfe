from __future__ import annotations

import json

import pytest
from pydantic import TypeAdapter

from app.schemas.order_event import OrderLifecycleEvent
from app.schemas.realtime import DeliveryFilter, UserType
from app.services.order_events import OrderEventPublisher, build_notification
from app.services.realtime import NotificationRouter
from app.services.registry import ConnectionRegistry
from tests.helpers import FakeConnection

order_event = TypeAdapter(OrderLifecycleEvent)


@pytest.mark.parametrize(
    ("payload", "expected_filter"),
    [
        (
            {"type": "new_order", "restaurantId": 5, "customerId": 42},
            DeliveryFilter(restaurant_id=5, user_type=UserType.RESTAURANT_OWNER),
        ),
        (
            {"type": "order_status_update", "customerId": 42, "status": "ready"},
            DeliveryFilter(user_id=42, user_type=UserType.CUSTOMER),
        ),
        (
            {"type": "delivery_assignment", "deliveryPartnerId": 77, "restaurantId": 5},
            DeliveryFilter(user_id=77, user_type=UserType.DELIVERY_PARTNER),
        ),
        (
            {"type": "delivery_assigned", "customerId": 42, "deliveryPartnerId": 77},
            DeliveryFilter(user_id=42, user_type=UserType.CUSTOMER),
        ),
        (
            {"type": "order_admin_decision", "restaurantId": 5, "approved": False},
            DeliveryFilter(restaurant_id=5, user_type=UserType.RESTAURANT_OWNER),
        ),
        (
            {"type": "order_approval", "customerId": 42, "approved": True},
            DeliveryFilter(user_id=42, user_type=UserType.CUSTOMER),
        ),
    ],
)
def test_each_order_event_targets_its_audience(payload, expected_filter):
    notification, delivery_filter = build_notification(31, order_event.validate_python(payload))

    assert delivery_filter == expected_filter
    assert notification.type == payload["type"]
    assert notification.data["orderId"] == 31
    assert "#31" in notification.message


def test_status_message_uses_label_or_falls_back_to_status():
    known, _ = build_notification(
        3, order_event.validate_python({"type": "order_status_update", "customerId": 1, "status": "preparing"})
    )
    unknown, _ = build_notification(
        3, order_event.validate_python({"type": "order_status_update", "customerId": 1, "status": "held_at_depot"})
    )

    assert known.message == "Your order #3 is being prepared."
    assert unknown.message == "Your order #3 is now held at depot."


def test_optional_fields_are_left_out_of_data():
    notification, _ = build_notification(
        8, order_event.validate_python({"type": "new_order", "restaurantId": 5, "totalAmount": 24.5})
    )

    assert notification.data == {"orderId": 8, "restaurantId": 5, "totalAmount": 24.5}


def test_rejection_reason_is_appended_to_message():
    notification, _ = build_notification(
        4,
        order_event.validate_python(
            {"type": "order_approval", "customerId": 1, "approved": False, "reason": "Out of stock."}
        ),
    )

    assert notification.title == "Order declined"
    assert notification.message == "Your order #4 was declined. Out of stock."


@pytest.mark.asyncio
async def test_publisher_routes_to_matching_connections_only():
    registry = ConnectionRegistry()
    courier, other_courier = FakeConnection(), FakeConnection()
    registry.bind(registry.add(courier), user_id=77, user_type=UserType.DELIVERY_PARTNER)
    registry.bind(registry.add(other_courier), user_id=78, user_type=UserType.DELIVERY_PARTNER)
    publisher = OrderEventPublisher(NotificationRouter(registry))

    result = await publisher.publish(
        12, order_event.validate_python({"type": "delivery_assignment", "deliveryPartnerId": 77})
    )

    assert result.delivered == 1
    assert other_courier.sent == []
    frame = json.loads(courier.sent[0])
    assert frame["type"] == "delivery_assignment"
    assert frame["data"] == {"orderId": 12, "deliveryPartnerId": 77}
