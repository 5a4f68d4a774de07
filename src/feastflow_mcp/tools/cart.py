import logging
from typing import Any

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import GatewayError
from feastflow_mcp.state import StorefrontState
from feastflow_mcp.tools.common import failure, gateway_failure
from feastflow_mcp.tools.menu import refresh_menu

logger = logging.getLogger(__name__)


def _cart_result(state: StorefrontState, config: StorefrontConfig, **extra) -> dict[str, Any]:
    result: dict[str, Any] = {"success": True}
    result.update(extra)
    result["cart"] = state.cart.to_dict(config.checkout.currency_symbol)
    return result


async def get_cart(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    """View the current cart contents and running total."""
    return _cart_result(state, config)


async def add_to_cart(
    state: StorefrontState,
    config: StorefrontConfig,
    item_id: str,
) -> dict[str, Any]:
    """Add one of a menu item to the cart, or bump its quantity if already there."""
    item = state.find_menu_item(item_id)
    if item is None:
        try:
            await refresh_menu(state)
        except GatewayError as e:
            return gateway_failure(state, e, "MENU_FETCH_FAILED", "Failed to load menu")
        item = state.find_menu_item(item_id)
    if item is None:
        return failure("NOT_FOUND", f"No menu item with id {item_id}. Call list_menu first.")

    line = state.cart.add_item(item)
    return _cart_result(state, config, item_id=line.id, quantity=line.quantity)


async def increase_quantity(
    state: StorefrontState,
    config: StorefrontConfig,
    item_id: str,
) -> dict[str, Any]:
    if state.cart.find(item_id) is None:
        return failure("NOT_IN_CART", f"Item {item_id} is not in the cart.")
    state.cart.increase_qty(item_id)
    return _cart_result(state, config)


async def decrease_quantity(
    state: StorefrontState,
    config: StorefrontConfig,
    item_id: str,
) -> dict[str, Any]:
    """Lower the quantity by one; the line disappears once it would reach zero."""
    if state.cart.find(item_id) is None:
        return failure("NOT_IN_CART", f"Item {item_id} is not in the cart.")
    state.cart.decrease_qty(item_id)
    return _cart_result(state, config, removed=state.cart.find(item_id) is None)


async def remove_from_cart(
    state: StorefrontState,
    config: StorefrontConfig,
    item_id: str,
) -> dict[str, Any]:
    """Remove a line from the cart. Removing an absent item is not an error."""
    removed = state.cart.remove_item(item_id)
    return _cart_result(state, config, removed=removed)


async def clear_cart(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    """Empty the entire cart."""
    state.cart.clear_cart()
    return _cart_result(state, config, message="Cart cleared.")
