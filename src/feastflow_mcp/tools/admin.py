import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import GatewayError, ValidationError
from feastflow_mcp.models import (
    STATUS_SEQUENCE,
    MenuItemDraft,
    Order,
    payment_label,
    status_label,
)
from feastflow_mcp.state import StorefrontState
from feastflow_mcp.sync import rollback_on_error
from feastflow_mcp.tools.common import (
    failure,
    gateway_failure,
    order_view,
    require_admin,
)
from feastflow_mcp.tools.menu import menu_item_view, refresh_menu

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ANALYTICS_DEFAULT_DAYS = 7


def _money(value: Decimal) -> str:
    return f"{value.quantize(CENT, rounding=ROUND_HALF_UP)}"


def build_menu_draft(
    name: str, price: str, description: str = "", image: str = ""
) -> MenuItemDraft:
    if not name.strip() or not str(price).strip():
        raise ValidationError("Name and price are required")
    try:
        amount = Decimal(str(price).strip())
    except InvalidOperation:
        raise ValidationError("Please enter a valid price") from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Please enter a valid price")
    return MenuItemDraft(
        name=name.strip(),
        description=description.strip(),
        price=amount,
        image=image.strip(),
    )


# --- Menu management ---


async def create_menu_item(
    state: StorefrontState,
    config: StorefrontConfig,
    name: str,
    price: str,
    description: str = "",
    image: str = "",
) -> dict[str, Any]:
    denied = require_admin(state)
    if denied:
        return denied
    try:
        draft = build_menu_draft(name, price, description, image)
    except ValidationError as e:
        state.notifier.error(str(e))
        return failure("VALIDATION_FAILED", str(e))

    try:
        created = await state.session.request(state.gateway.create_menu_item, draft)
        await refresh_menu(state)
    except GatewayError as e:
        return gateway_failure(state, e, "SAVE_FAILED", "Failed to save item")

    state.notifier.success("Item added successfully")
    result: dict[str, Any] = {"success": True}
    if created:
        result["item"] = menu_item_view(created, config.checkout.currency_symbol)
    return result


async def update_menu_item(
    state: StorefrontState,
    config: StorefrontConfig,
    item_id: str,
    name: str,
    price: str,
    description: str = "",
    image: str = "",
) -> dict[str, Any]:
    denied = require_admin(state)
    if denied:
        return denied
    try:
        draft = build_menu_draft(name, price, description, image)
    except ValidationError as e:
        state.notifier.error(str(e))
        return failure("VALIDATION_FAILED", str(e))

    try:
        updated = await state.session.request(state.gateway.update_menu_item, item_id, draft)
        await refresh_menu(state)
    except GatewayError as e:
        return gateway_failure(state, e, "SAVE_FAILED", "Failed to save item")

    state.notifier.success("Item updated successfully")
    result: dict[str, Any] = {"success": True, "item_id": item_id}
    if updated:
        result["item"] = menu_item_view(updated, config.checkout.currency_symbol)
    return result


async def delete_menu_item(
    state: StorefrontState,
    config: StorefrontConfig,
    item_id: str,
) -> dict[str, Any]:
    denied = require_admin(state)
    if denied:
        return denied
    try:
        await state.session.request(state.gateway.delete_menu_item, item_id)
    except GatewayError as e:
        return gateway_failure(state, e, "DELETE_FAILED", "Failed to delete")

    state.menu_cache = [i for i in state.menu_cache if i.id != item_id]
    state.notifier.success("Item deleted")
    return {"success": True, "deleted": item_id}


# --- Order management ---


async def list_all_orders(
    state: StorefrontState,
    config: StorefrontConfig,
    page: int = 1,
) -> dict[str, Any]:
    denied = require_admin(state)
    if denied:
        return denied
    if page < 1:
        return failure("VALIDATION_FAILED", "Page must be 1 or greater.")

    try:
        applied = await state.admin_orders.load(
            lambda: state.session.request(state.gateway.list_all_orders, page)
        )
    except GatewayError as e:
        return gateway_failure(state, e, "ORDERS_FETCH_FAILED", "Failed to load orders")
    if not applied:
        return failure("STALE", "Orders view was closed before the fetch finished.")

    symbol = config.checkout.currency_symbol
    return {
        "success": True,
        "page": page,
        "orders": [order_view(o, symbol) for o in state.admin_orders.orders],
        "statuses": STATUS_SEQUENCE,
    }


async def update_order_status(
    state: StorefrontState,
    config: StorefrontConfig,
    order_id: str,
    status: str,
) -> dict[str, Any]:
    """Move an order to a new stage. Shown immediately, rolled back if the API refuses."""
    denied = require_admin(state)
    if denied:
        return denied
    if status not in STATUS_SEQUENCE:
        return failure(
            "VALIDATION_FAILED",
            f"Unknown status {status!r}. Use one of: {', '.join(STATUS_SEQUENCE)}",
        )
    previous = state.admin_orders.get(order_id)
    if previous is None:
        return failure("NOT_FOUND", f"Order {order_id} is not loaded. Call all_orders first.")

    try:
        with rollback_on_error(state.admin_orders):
            state.admin_orders.set_status(order_id, status)
            await state.session.request(state.gateway.update_order_status, order_id, status)
    except GatewayError as e:
        logger.warning(f"Status update for {order_id} failed, rolled back: {e}")
        result = gateway_failure(state, e, "UPDATE_FAILED", "Failed to update status")
        result["status"] = previous.status
        return result

    state.notifier.success(f"Status updated to {status_label(status)}")
    return {
        "success": True,
        "order_id": order_id,
        "status": status,
        "previous_status": previous.status,
    }


# --- Reports ---


def _parse_day(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be a date like 2026-01-31") from None


async def daily_analytics(
    state: StorefrontState,
    config: StorefrontConfig,
    start_date: str = "",
    end_date: str = "",
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Revenue, order counts, popular items and payment mix for a date range."""
    denied = require_admin(state)
    if denied:
        return denied

    today = today or date.today()
    try:
        end = _parse_day(end_date, "end_date") if end_date else today
        start = (
            _parse_day(start_date, "start_date")
            if start_date
            else end - timedelta(days=ANALYTICS_DEFAULT_DAYS)
        )
        if start > end:
            raise ValidationError("start_date must not be after end_date")
    except ValidationError as e:
        return failure("VALIDATION_FAILED", str(e))

    try:
        report = await state.session.request(
            state.gateway.get_analytics, start.isoformat(), end.isoformat()
        )
    except GatewayError as e:
        return gateway_failure(state, e, "ANALYTICS_FAILED", "Failed to load analytics")

    symbol = config.checkout.currency_symbol
    return {
        "success": True,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "total_orders": report.totals.total_orders,
        "total_revenue": f"{symbol}{_money(report.totals.total_revenue)}",
        "average_order_value": f"{symbol}{_money(report.average_order_value)}",
        "revenue_trend": report.revenue_trend,
        "daily": [
            {"date": d.date, "orders": d.orders, "revenue": _money(d.revenue)}
            for d in report.daily
        ],
        "popular_items": [
            {"name": p.name, "quantity": p.quantity} for p in report.popular_items
        ],
        "payment_methods": [
            {"method": payment_label(p.method), "count": p.count}
            for p in report.payment_methods
        ],
    }


def invoice_for(order: Order, gst_rate: Decimal) -> dict[str, Any]:
    rows = []
    for i, line in enumerate(order.lines, start=1):
        price = line.price if line.price is not None else Decimal("0")
        rows.append(
            {
                "n": i,
                "item": line.name or "Unknown Item",
                "quantity": line.quantity,
                "unit_price": _money(price),
                "total": _money(price * line.quantity),
            }
        )
    subtotal = order.lines_total
    gst = subtotal * gst_rate
    return {
        "invoice_number": f"INV-{order.id[-8:].upper()}",
        "invoice_date": order.created_at.date().isoformat() if order.created_at else None,
        "payment_method": payment_label(order.payment_method),
        "status": order.status.replace("_", " ").upper(),
        "bill_to": {
            "name": order.customer_name,
            "address": order.address,
            "phone": order.phone,
        },
        "rows": rows,
        "subtotal": _money(subtotal),
        "gst_rate_percent": f"{(gst_rate * 100).normalize():f}",
        "gst": _money(gst),
        "grand_total": _money(subtotal + gst),
    }


async def order_invoice(
    state: StorefrontState,
    config: StorefrontConfig,
    order_id: str,
) -> dict[str, Any]:
    """Tax invoice figures for a loaded order."""
    denied = require_admin(state)
    if denied:
        return denied
    order = state.admin_orders.get(order_id)
    if order is None:
        return failure("NOT_FOUND", f"Order {order_id} is not loaded. Call all_orders first.")
    return {"success": True, "invoice": invoice_for(order, config.checkout.gst_rate)}
