import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import GatewayError, ValidationError
from feastflow_mcp.models import (
    DeliveryDetails,
    OrderRequest,
    OrderRequestLine,
    PaymentMethod,
    payment_label,
)
from feastflow_mcp.state import CartStore, StorefrontState
from feastflow_mcp.tools.common import (
    failure,
    gateway_failure,
    order_view,
    require_user,
)

logger = logging.getLogger(__name__)


def _audit_log(path: str, message: str) -> None:
    """Append an entry to the audit log."""
    try:
        log_dir = os.path.dirname(path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        with open(path, "a") as f:
            f.write(f"{timestamp} | {message}\n")
    except OSError as e:
        logger.warning(f"Failed to write audit log: {e}")


def build_order_request(
    cart: CartStore,
    name: str,
    address: str,
    phone: str,
    payment_method: str = PaymentMethod.CASH.value,
) -> OrderRequest:
    """Check the checkout form and turn the cart into an order request."""
    if not name.strip():
        raise ValidationError("Name is required")
    if not address.strip():
        raise ValidationError("Address is required")
    if not phone.strip():
        raise ValidationError("Phone is required")
    if cart.is_empty():
        raise ValidationError("Cart is empty")
    try:
        method = PaymentMethod(payment_method)
    except ValueError:
        choices = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(
            f"Unknown payment method {payment_method!r} (use one of: {choices})"
        ) from None

    return OrderRequest(
        items=[OrderRequestLine(menu_item=line.id, quantity=line.quantity) for line in cart.lines],
        delivery_details=DeliveryDetails(
            name=name.strip(), address=address.strip(), phone=phone.strip()
        ),
        payment_method=method,
    )


async def place_order(
    state: StorefrontState,
    config: StorefrontConfig,
    name: str,
    address: str,
    phone: str,
    payment_method: str = PaymentMethod.CASH.value,
) -> dict[str, Any]:
    """Place the cart as an order for delivery, then empty the cart."""
    dry_run = os.environ.get("DRY_RUN", "false").lower() in ("true", "1", "yes")
    audit_path = config.checkout.audit_log_path

    denied = require_user(state)
    if denied:
        _audit_log(audit_path, f"PLACE_ORDER | ABORTED | reason={denied['code']}")
        return denied

    try:
        request = build_order_request(state.cart, name, address, phone, payment_method)
    except ValidationError as e:
        state.notifier.error(str(e))
        _audit_log(audit_path, f"PLACE_ORDER | ABORTED | reason=VALIDATION | {e}")
        return failure("VALIDATION_FAILED", str(e))

    total = state.cart.total_price
    item_summary = [f"{line.name} x{line.quantity}" for line in state.cart.lines]

    if dry_run:
        _audit_log(
            audit_path,
            f"PLACE_ORDER | DRY_RUN | items={json.dumps(item_summary)} | "
            f"total={total:.2f} | payment={request.payment_method.value}",
        )
        return {
            "success": True,
            "order_id": "DRY_RUN_NO_ORDER",
            "dry_run": True,
            "total_charged": f"{config.checkout.currency_symbol}{total:.2f}",
            "message": "Dry run: order was NOT placed and the cart was kept. Set DRY_RUN=false to order.",
        }

    try:
        order = await state.session.request(state.gateway.create_order, request)
    except GatewayError as e:
        logger.warning(f"Order placement failed: {e}")
        _audit_log(audit_path, f"PLACE_ORDER | ERROR | reason={e}")
        return gateway_failure(state, e, "PLACE_FAILED", "Failed to place order")

    order_id = order.id if order else "UNKNOWN"
    _audit_log(
        audit_path,
        f"PLACE_ORDER | CONFIRMED | items={json.dumps(item_summary)} | "
        f"total={total:.2f} | payment={request.payment_method.value} | order_id={order_id}",
    )

    result: dict[str, Any] = {
        "success": True,
        "order_id": order_id,
        "total_charged": f"{config.checkout.currency_symbol}{total:.2f}",
        "payment_method": payment_label(request.payment_method.value),
    }

    # The order exists remotely from here on; a failure below must not hide that.
    try:
        state.cart.clear_cart()
        result["cart_cleared"] = True
    except Exception:
        logger.exception("Order placed but the cart could not be cleared")
        result["cart_cleared"] = False
        result["message"] = f"Order {order_id} placed, cart not yet cleared."
        return result

    if request.payment_method is PaymentMethod.CASH:
        state.notifier.success("Order placed successfully! (Cash on delivery)")
        result["message"] = f"Order {order_id} placed. Pay cash on delivery."
    else:
        label = payment_label(request.payment_method.value)
        state.notifier.success(f"Redirecting to {label}...")
        asyncio.get_running_loop().call_later(
            config.checkout.payment_delay_seconds,
            state.notifier.success,
            "Payment successful! Order placed.",
        )
        result["message"] = f"Order {order_id} placed. Confirming {label} payment."
    return result


async def my_orders(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    """Fetch the signed-in user's orders with their delivery progress."""
    denied = require_user(state)
    if denied:
        return denied

    try:
        applied = await state.my_orders.load(
            lambda: state.session.request(state.gateway.list_my_orders)
        )
    except GatewayError as e:
        return gateway_failure(state, e, "ORDERS_FETCH_FAILED", "Failed to load orders")
    if not applied:
        return failure("STALE", "Orders view was closed before the fetch finished.")

    symbol = config.checkout.currency_symbol
    return {
        "success": True,
        "orders": [order_view(o, symbol) for o in state.my_orders.orders],
        "order_count": len(state.my_orders),
        "live_updates": state.tracker.active,
    }
