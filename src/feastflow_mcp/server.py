import json
import logging
import os
import sys
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP, Context

from feastflow_mcp.config import StorefrontConfig, load_config
from feastflow_mcp.state import StorefrontState
from feastflow_mcp.tools import account, admin
from feastflow_mcp.tools.cart import (
    add_to_cart,
    clear_cart,
    decrease_quantity,
    get_cart,
    increase_quantity,
    remove_from_cart,
)
from feastflow_mcp.tools.menu import list_menu
from feastflow_mcp.tools.order import my_orders, place_order
from feastflow_mcp.tools.tracking import track_order, unwatch_orders, watch_orders

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Build the stores and resolve any saved login on startup."""
    logger.info("Starting FeastFlow storefront MCP server...")

    try:
        config = load_config()
        logger.info("Config loaded successfully")
    except FileNotFoundError as e:
        logger.error(str(e))
        raise

    state = StorefrontState.from_config(config)
    identity = await state.session.restore()
    if identity:
        logger.info(f"Restored session for {identity.email}")

    yield {"config": config, "state": state}

    await state.tracker.stop()
    logger.info("Shutting down FeastFlow storefront MCP server")


host = os.environ.get("HOST", "0.0.0.0")
port = int(os.environ.get("PORT", "8000"))

mcp = FastMCP(
    "FeastFlow Storefront MCP Server",
    lifespan=lifespan,
    host=host,
    port=port,
)


def _get_deps(ctx) -> tuple[StorefrontState, StorefrontConfig]:
    """Extract state and config from the MCP context."""
    state = ctx.request_context.lifespan_context["state"]
    config = ctx.request_context.lifespan_context["config"]
    return state, config


# --- Account Tools ---


@mcp.tool()
async def tool_login(ctx: Context, email: str, password: str) -> str:
    """Sign in with email and password. Password must be at least 6 characters."""
    state, config = _get_deps(ctx)
    return json.dumps(await account.login(state, config, email, password))


@mcp.tool()
async def tool_register(ctx: Context, name: str, email: str, password: str) -> str:
    """Create an account and sign in."""
    state, config = _get_deps(ctx)
    return json.dumps(await account.register(state, config, name, email, password))


@mcp.tool()
async def tool_logout(ctx: Context) -> str:
    """Sign out. This also empties the cart."""
    state, config = _get_deps(ctx)
    return json.dumps(await account.logout(state, config))


@mcp.tool()
async def tool_whoami(ctx: Context) -> str:
    """Show the signed-in user and role. authenticated is null while a saved login is being checked."""
    state, config = _get_deps(ctx)
    return json.dumps(await account.whoami(state, config))


@mcp.tool()
async def tool_notifications(ctx: Context) -> str:
    """Messages raised since the last call (item added, status changed, payment confirmed...)."""
    state, config = _get_deps(ctx)
    return json.dumps(await account.notifications(state, config))


# --- Menu Tools ---


@mcp.tool()
async def tool_list_menu(ctx: Context, query: str = "") -> str:
    """List the menu. Pass query to filter by name or description, e.g. 'paneer'."""
    state, config = _get_deps(ctx)
    return json.dumps(await list_menu(state, config, query))


# --- Cart Tools ---


@mcp.tool()
async def tool_get_cart(ctx: Context) -> str:
    """View the current cart contents and running total."""
    state, config = _get_deps(ctx)
    return json.dumps(await get_cart(state, config))


@mcp.tool()
async def tool_add_to_cart(ctx: Context, item_id: str) -> str:
    """Add one of a menu item (item_id from list_menu). Adding it again raises its quantity."""
    state, config = _get_deps(ctx)
    return json.dumps(await add_to_cart(state, config, item_id))


@mcp.tool()
async def tool_increase_quantity(ctx: Context, item_id: str) -> str:
    """Add one more of an item already in the cart."""
    state, config = _get_deps(ctx)
    return json.dumps(await increase_quantity(state, config, item_id))


@mcp.tool()
async def tool_decrease_quantity(ctx: Context, item_id: str) -> str:
    """Take one away from an item in the cart. At zero the item is removed."""
    state, config = _get_deps(ctx)
    return json.dumps(await decrease_quantity(state, config, item_id))


@mcp.tool()
async def tool_remove_from_cart(ctx: Context, item_id: str) -> str:
    """Remove an item from the cart entirely."""
    state, config = _get_deps(ctx)
    return json.dumps(await remove_from_cart(state, config, item_id))


@mcp.tool()
async def tool_clear_cart(ctx: Context) -> str:
    """Empty the entire cart."""
    state, config = _get_deps(ctx)
    return json.dumps(await clear_cart(state, config))


# --- Order Tools ---


@mcp.tool()
async def tool_place_order(
    ctx: Context,
    name: str,
    address: str,
    phone: str,
    payment_method: str = "cash",
) -> str:
    """Place the cart as a delivery order. Requires being signed in.
    payment_method is one of cash, paytm, gpay, phonepe. The cart is emptied on success."""
    state, config = _get_deps(ctx)
    result = await place_order(state, config, name, address, phone, payment_method)
    return json.dumps(result)


@mcp.tool()
async def tool_my_orders(ctx: Context) -> str:
    """List my orders with their delivery stage (received, preparing, out_for_delivery, delivered)."""
    state, config = _get_deps(ctx)
    return json.dumps(await my_orders(state, config))


@mcp.tool()
async def tool_watch_orders(ctx: Context) -> str:
    """Start receiving live status updates for my orders. Check tool_notifications for changes."""
    state, config = _get_deps(ctx)
    return json.dumps(await watch_orders(state, config))


@mcp.tool()
async def tool_unwatch_orders(ctx: Context) -> str:
    """Stop live status updates for my orders."""
    state, config = _get_deps(ctx)
    return json.dumps(await unwatch_orders(state, config))


@mcp.tool()
async def tool_track_order(ctx: Context, order_id: str) -> str:
    """Current stage of one of my orders, as last fetched or pushed."""
    state, config = _get_deps(ctx)
    return json.dumps(await track_order(state, config, order_id))


# --- Admin Tools ---


@mcp.tool()
async def tool_admin_create_menu_item(
    ctx: Context,
    name: str,
    price: str,
    description: str = "",
    image: str = "",
) -> str:
    """Admin only. Add a menu item. price is a non-negative number, e.g. '12.50'."""
    state, config = _get_deps(ctx)
    result = await admin.create_menu_item(state, config, name, price, description, image)
    return json.dumps(result)


@mcp.tool()
async def tool_admin_update_menu_item(
    ctx: Context,
    item_id: str,
    name: str,
    price: str,
    description: str = "",
    image: str = "",
) -> str:
    """Admin only. Replace a menu item's name, price, description and image."""
    state, config = _get_deps(ctx)
    result = await admin.update_menu_item(
        state, config, item_id, name, price, description, image
    )
    return json.dumps(result)


@mcp.tool()
async def tool_admin_delete_menu_item(ctx: Context, item_id: str) -> str:
    """Admin only. Delete a menu item."""
    state, config = _get_deps(ctx)
    return json.dumps(await admin.delete_menu_item(state, config, item_id))


@mcp.tool()
async def tool_admin_all_orders(ctx: Context, page: int = 1) -> str:
    """Admin only. List all orders, one page at a time."""
    state, config = _get_deps(ctx)
    return json.dumps(await admin.list_all_orders(state, config, page))


@mcp.tool()
async def tool_admin_update_order_status(ctx: Context, order_id: str, status: str) -> str:
    """Admin only. Set an order's stage: received, preparing, out_for_delivery or delivered.
    Call tool_admin_all_orders first."""
    state, config = _get_deps(ctx)
    return json.dumps(await admin.update_order_status(state, config, order_id, status))


@mcp.tool()
async def tool_admin_daily_analytics(
    ctx: Context,
    start_date: str = "",
    end_date: str = "",
) -> str:
    """Admin only. Orders, revenue, popular items and payment mix per day.
    Dates are YYYY-MM-DD; defaults to the last 7 days."""
    state, config = _get_deps(ctx)
    result = await admin.daily_analytics(state, config, start_date, end_date)
    return json.dumps(result)


@mcp.tool()
async def tool_admin_order_invoice(ctx: Context, order_id: str) -> str:
    """Admin only. Tax invoice figures (subtotal, GST, grand total) for a loaded order."""
    state, config = _get_deps(ctx)
    return json.dumps(await admin.order_invoice(state, config, order_id))


if __name__ == "__main__":
    logger.info(f"Starting MCP server on {host}:{port}")
    mcp.run(transport="streamable-http")
