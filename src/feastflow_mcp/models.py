"""Records exchanged with the remote API.

Field names follow Python conventions; aliases carry the wire names
(`_id`, camelCase). Every model accepts either form.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Session ---


Role = Literal["user", "admin"]


class Identity(WireModel):
    id: str = Field(alias="_id")
    name: str
    email: str
    role: Role = "user"


class AuthResult(WireModel):
    token: str
    user: Identity


# --- Menu ---


class MenuItem(WireModel):
    id: str = Field(alias="_id")
    name: str
    description: str = ""
    price: Decimal
    image: Optional[str] = None


class MenuItemDraft(WireModel):
    """Body of a menu create/update request."""

    name: str
    description: str = ""
    price: Decimal
    image: str = ""


# --- Orders ---


class OrderStatus(str, Enum):
    RECEIVED = "received"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"


STATUS_SEQUENCE = [s.value for s in OrderStatus]

STATUS_LABELS = {
    OrderStatus.RECEIVED.value: "Order Received",
    OrderStatus.PREPARING.value: "Preparing",
    OrderStatus.OUT_FOR_DELIVERY.value: "Out for Delivery",
    OrderStatus.DELIVERED.value: "Delivered",
}

STATUS_TONES = {
    OrderStatus.RECEIVED.value: "info",
    OrderStatus.PREPARING.value: "warning",
    OrderStatus.OUT_FOR_DELIVERY.value: "primary",
    OrderStatus.DELIVERED.value: "success",
}


def status_label(status: str) -> str:
    """Display label; unknown statuses are shown verbatim."""
    return STATUS_LABELS.get(status, status)


def status_tone(status: str) -> str:
    return STATUS_TONES.get(status, "muted")


def status_step(status: str) -> int:
    """Zero-based stepper position, or -1 when the status is not a known stage."""
    try:
        return STATUS_SEQUENCE.index(status)
    except ValueError:
        return -1


class PaymentMethod(str, Enum):
    CASH = "cash"
    PAYTM = "paytm"
    GPAY = "gpay"
    PHONEPE = "phonepe"


PAYMENT_LABELS = {
    PaymentMethod.CASH.value: "Cash on Delivery",
    PaymentMethod.PAYTM.value: "Paytm",
    PaymentMethod.GPAY.value: "Google Pay",
    PaymentMethod.PHONEPE.value: "PhonePe",
}


def payment_label(method: Optional[str]) -> str:
    if not method:
        return "Other"
    return PAYMENT_LABELS.get(method, method)


class DeliveryDetails(WireModel):
    name: str
    address: str
    phone: str


class OrderLine(WireModel):
    menu_item_id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: int = 1

    @model_validator(mode="before")
    @classmethod
    def _flatten_menu_item(cls, data: Any) -> Any:
        # "My orders" sends {"menuItem": {...} | id}, the admin list sends
        # {"menuItemId": {...} | null}.
        if not isinstance(data, dict):
            return data
        if "menuItem" not in data and "menuItemId" not in data:
            return data
        ref = data.get("menuItem", data.get("menuItemId"))
        flat: dict[str, Any] = {"quantity": data.get("quantity", 1)}
        if isinstance(ref, dict):
            flat["menu_item_id"] = ref.get("_id")
            flat["name"] = ref.get("name")
            flat["price"] = ref.get("price")
        elif ref is not None:
            flat["menu_item_id"] = str(ref)
        return flat

    @property
    def line_total(self) -> Optional[Decimal]:
        if self.price is None:
            return None
        return self.price * self.quantity


class Order(WireModel):
    id: str = Field(alias="_id")
    lines: list[OrderLine] = Field(default_factory=list, alias="items")
    total_price: Optional[Decimal] = Field(default=None, alias="totalPrice")
    status: str = OrderStatus.RECEIVED.value
    delivery_details: Optional[DeliveryDetails] = Field(
        default=None, alias="deliveryDetails"
    )
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    address: Optional[str] = None
    phone: Optional[str] = None
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @property
    def lines_total(self) -> Decimal:
        """Sum over lines whose menu item is still known."""
        return sum(
            (line.line_total for line in self.lines if line.line_total is not None),
            Decimal("0"),
        )

    @property
    def short_id(self) -> str:
        return self.id[-6:]


class OrderStatusEvent(WireModel):
    order_id: str = Field(alias="orderId")
    status: str


class OrderRequestLine(WireModel):
    menu_item: str = Field(alias="menuItem")
    quantity: int


class OrderRequest(WireModel):
    items: list[OrderRequestLine]
    delivery_details: DeliveryDetails = Field(alias="deliveryDetails")
    payment_method: PaymentMethod = Field(alias="paymentMethod")


# --- Analytics ---


class DailyPoint(WireModel):
    date: str = Field(alias="_id")
    orders: int = 0
    revenue: Decimal = Decimal("0")


class PopularItem(WireModel):
    name: str = "Unknown"
    quantity: int = 0


class PaymentBreakdown(WireModel):
    method: Optional[str] = Field(default=None, alias="_id")
    count: int = 0


class AnalyticsTotals(WireModel):
    total_orders: int = Field(default=0, alias="totalOrders")
    total_revenue: Decimal = Field(default=Decimal("0"), alias="totalRevenue")


class AnalyticsPeriod(WireModel):
    start: str
    end: str


class DailyAnalytics(WireModel):
    daily: list[DailyPoint] = Field(default_factory=list)
    popular_items: list[PopularItem] = Field(default_factory=list, alias="popularItems")
    payment_methods: list[PaymentBreakdown] = Field(
        default_factory=list, alias="paymentMethods"
    )
    totals: AnalyticsTotals = Field(default_factory=AnalyticsTotals)
    period: Optional[AnalyticsPeriod] = None

    @property
    def average_order_value(self) -> Decimal:
        if self.totals.total_orders <= 0:
            return Decimal("0")
        return self.totals.total_revenue / self.totals.total_orders

    @property
    def revenue_trend(self) -> str:
        if len(self.daily) < 2:
            return "neutral"
        return "up" if self.daily[-1].revenue > self.daily[0].revenue else "down"
