import logging
from typing import Any, Optional

from feastflow_mcp.errors import AuthError, GatewayError
from feastflow_mcp.models import (
    Order,
    payment_label,
    status_label,
    status_step,
    status_tone,
)
from feastflow_mcp.state import StorefrontState

logger = logging.getLogger(__name__)


def failure(code: str, error: str) -> dict[str, Any]:
    return {"success": False, "error": error, "code": code}


def gateway_failure(
    state: StorefrontState, e: GatewayError, code: str, fallback: str
) -> dict[str, Any]:
    """Turn a gateway error into a tool result and a user-visible message."""
    if isinstance(e, AuthError):
        # The session store has already cleared itself if a credential was rejected.
        return failure("AUTH_FAILED", e.message or "Please log in again")
    state.notifier.error(e.message or fallback)
    return failure(code, e.message or fallback)


def require_user(state: StorefrontState) -> Optional[dict[str, Any]]:
    authenticated = state.session.is_authenticated
    if authenticated is None:
        return failure("SESSION_LOADING", "Still checking the saved login, try again shortly.")
    if not authenticated:
        return failure("NOT_SIGNED_IN", "Please log in first.")
    return None


def require_admin(state: StorefrontState) -> Optional[dict[str, Any]]:
    denied = require_user(state)
    if denied:
        return denied
    if not state.session.is_admin:
        return failure("FORBIDDEN", "Admin access required.")
    return None


def order_view(order: Order, currency_symbol: str = "$") -> dict[str, Any]:
    total = order.total_price if order.total_price is not None else order.lines_total
    view: dict[str, Any] = {
        "order_id": order.id,
        "short_id": order.short_id,
        "status": order.status,
        "status_label": status_label(order.status),
        "status_tone": status_tone(order.status),
        "step": status_step(order.status),
        "items": [
            {
                "name": line.name or "Item",
                "quantity": line.quantity,
                "line_total": f"{line.line_total:.2f}" if line.line_total is not None else None,
            }
            for line in order.lines
        ],
        "total": f"{currency_symbol}{total:.2f}",
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }
    if order.delivery_details:
        view["delivery"] = order.delivery_details.model_dump()
    if order.customer_name:
        view["customer_name"] = order.customer_name
    if order.payment_method:
        view["payment_method"] = payment_label(order.payment_method)
    return view
