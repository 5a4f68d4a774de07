from decimal import Decimal

import pytest

from feastflow_mcp.models import (
    DailyAnalytics,
    Order,
    OrderStatusEvent,
    payment_label,
    status_label,
    status_step,
    status_tone,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "status,label,step",
    [
        ("received", "Order Received", 0),
        ("preparing", "Preparing", 1),
        ("out_for_delivery", "Out for Delivery", 2),
        ("delivered", "Delivered", 3),
        ("cancelled", "cancelled", -1),
    ],
)
def test_status_presentation(status, label, step):
    assert status_label(status) == label
    assert status_step(status) == step


def test_unknown_status_has_muted_tone():
    assert status_tone("delivered") == "success"
    assert status_tone("cancelled") == "muted"


@pytest.mark.parametrize(
    "method,label",
    [("cash", "Cash on Delivery"), ("gpay", "Google Pay"), (None, "Other"), ("card", "card")],
)
def test_payment_label(method, label):
    assert payment_label(method) == label


def test_order_accepts_wire_names():
    order = Order.model_validate(
        {
            "_id": "65f0c0ffee00abcdef",
            "items": [{"menuItemId": {"_id": "m1", "name": "Dal", "price": "4.50"}, "quantity": 2}],
            "totalPrice": 9,
            "customerName": "Ada",
            "paymentMethod": "cash",
            "createdAt": "2024-03-01T10:00:00Z",
        }
    )

    assert order.customer_name == "Ada"
    assert order.lines[0].line_total == Decimal("9.00")
    assert order.short_id == "abcdef"
    assert order.status == "received"


def test_order_keeps_unknown_status_verbatim():
    order = Order.model_validate({"_id": "o1", "status": "on_hold"})
    assert order.status == "on_hold"


def test_status_event_uses_camel_case_id():
    event = OrderStatusEvent.model_validate({"orderId": "o1", "status": "preparing"})
    assert event.order_id == "o1"


def test_analytics_derived_figures():
    analytics = DailyAnalytics.model_validate(
        {
            "daily": [
                {"_id": "2024-03-01", "orders": 1, "revenue": 10},
                {"_id": "2024-03-02", "orders": 3, "revenue": 50},
            ],
            "totals": {"totalOrders": 4, "totalRevenue": 60},
        }
    )

    assert analytics.average_order_value == Decimal("15")
    assert analytics.revenue_trend == "up"


def test_empty_analytics_are_neutral():
    analytics = DailyAnalytics()
    assert analytics.average_order_value == Decimal("0")
    assert analytics.revenue_trend == "neutral"
