import logging
from typing import Any

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import GatewayError
from feastflow_mcp.state import StorefrontState
from feastflow_mcp.tools.common import failure, gateway_failure, order_view, require_user

logger = logging.getLogger(__name__)


async def watch_orders(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    """Open the live order view: subscribe to status pushes, then fetch my orders.

    A fetch that fails or is superseded drops the subscription again.
    """
    denied = require_user(state)
    if denied:
        return denied

    try:
        await state.tracker.start()
    except GatewayError as e:
        logger.exception("Error starting order tracking")
        return gateway_failure(state, e, "TRACK_FAILED", "Live order updates unavailable")
    except Exception as e:
        logger.exception("Error starting order tracking")
        state.notifier.error("Live order updates unavailable")
        return failure("TRACK_FAILED", str(e))

    try:
        applied = await state.my_orders.load(
            lambda: state.session.request(state.gateway.list_my_orders)
        )
    except GatewayError as e:
        await state.tracker.stop()
        return gateway_failure(state, e, "ORDERS_FETCH_FAILED", "Failed to load orders")
    if not applied:
        await state.tracker.stop()
        return failure("STALE", "Orders view was closed before the fetch finished.")

    return {
        "success": True,
        "watching": state.tracker.event,
        "order_count": len(state.my_orders),
    }


async def unwatch_orders(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    """Close the live order view and drop the push subscription."""
    await state.tracker.stop()
    state.my_orders.close()
    return {"success": True, "message": "Stopped watching orders."}


async def track_order(
    state: StorefrontState,
    config: StorefrontConfig,
    order_id: str,
) -> dict[str, Any]:
    """Current status of one order as last fetched or pushed."""
    denied = require_user(state)
    if denied:
        return denied
    order = state.my_orders.get(order_id)
    if order is None:
        return failure(
            "NOT_FOUND",
            f"Order {order_id} is not in the current view. Call my_orders or watch_orders first.",
        )
    result = order_view(order, config.checkout.currency_symbol)
    result["success"] = True
    result["live_updates"] = state.tracker.active
    return result
