import logging
from typing import Any

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import AuthError, GatewayError, ValidationError
from feastflow_mcp.state import StorefrontState
from feastflow_mcp.tools.common import failure

logger = logging.getLogger(__name__)


async def login(
    state: StorefrontState,
    config: StorefrontConfig,
    email: str,
    password: str,
) -> dict[str, Any]:
    try:
        identity = await state.session.login(email, password)
    except ValidationError as e:
        state.notifier.error(str(e))
        return failure("VALIDATION_FAILED", str(e))
    except AuthError as e:
        state.notifier.error(e.message or "Login failed")
        return failure("AUTH_FAILED", e.message or "Login failed")
    except GatewayError as e:
        state.notifier.error(e.message or "Login failed")
        return failure("LOGIN_FAILED", e.message or "Login failed")

    if identity is None:
        return failure("STALE", "Session changed while signing in; try again.")
    return {"success": True, "session": state.session.to_dict()}


async def register(
    state: StorefrontState,
    config: StorefrontConfig,
    name: str,
    email: str,
    password: str,
) -> dict[str, Any]:
    try:
        identity = await state.session.register(name, email, password)
    except ValidationError as e:
        state.notifier.error(str(e))
        return failure("VALIDATION_FAILED", str(e))
    except GatewayError as e:
        state.notifier.error(e.message or "Registration failed")
        return failure("REGISTER_FAILED", e.message or "Registration failed")

    if identity is None:
        return failure("STALE", "Session changed while registering; try again.")
    return {"success": True, "session": state.session.to_dict()}


async def logout(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    """Sign out. Also empties the cart and closes the live order view."""
    await state.tracker.stop()
    state.session.logout()
    return {"success": True, "session": state.session.to_dict()}


async def whoami(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    return {"success": True, "session": state.session.to_dict()}


async def notifications(
    state: StorefrontState,
    config: StorefrontConfig,
) -> dict[str, Any]:
    """Drain messages raised since the last call."""
    pending = state.notifier.drain()
    return {"success": True, "notifications": [n.to_dict() for n in pending]}
