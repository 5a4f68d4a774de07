import logging
from typing import Any

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import GatewayError
from feastflow_mcp.models import MenuItem
from feastflow_mcp.state import StorefrontState
from feastflow_mcp.tools.common import gateway_failure

logger = logging.getLogger(__name__)


def menu_item_view(item: MenuItem, currency_symbol: str = "$") -> dict[str, Any]:
    return {
        "item_id": item.id,
        "name": item.name,
        "description": item.description,
        "price": f"{currency_symbol}{item.price:.2f}",
        "image": item.image,
    }


async def refresh_menu(state: StorefrontState) -> list[MenuItem]:
    items = await state.session.request(state.gateway.list_menu)
    state.menu_cache = items
    return items


async def list_menu(
    state: StorefrontState,
    config: StorefrontConfig,
    query: str = "",
) -> dict[str, Any]:
    """Browse the menu, optionally filtered by name or description."""
    try:
        items = await refresh_menu(state)
    except GatewayError as e:
        logger.warning(f"Menu fetch failed: {e}")
        return gateway_failure(state, e, "MENU_FETCH_FAILED", "Failed to load menu")

    if query:
        q = query.lower()
        items = [i for i in items if q in i.name.lower() or q in i.description.lower()]

    symbol = config.checkout.currency_symbol
    return {
        "success": True,
        "items": [menu_item_view(i, symbol) for i in items],
        "item_count": len(items),
    }
