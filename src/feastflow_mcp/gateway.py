import logging
from typing import Any, Callable, Optional

import requests
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from feastflow_mcp.errors import AuthError, GatewayError
from feastflow_mcp.models import (
    AuthResult,
    DailyAnalytics,
    Identity,
    MenuItem,
    MenuItemDraft,
    Order,
    OrderRequest,
)

logger = logging.getLogger(__name__)


def _unwrap(data: Any, key: str) -> Any:
    """Some endpoints wrap their payload ({"orders": [...]}), some don't."""
    if isinstance(data, dict) and key in data:
        return data[key]
    return data


def _parse(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except SchemaError as e:
        logger.warning(f"Unexpected {model.__name__} payload: {e}")
        raise GatewayError(None, f"Unexpected {model.__name__} response") from e


class ApiGateway:
    """Blocking client for the storefront REST API.

    Every call attaches the current bearer credential when one is held and
    maps failures onto GatewayError / AuthError. Callers on the event loop
    reach it through SessionStore.request so that a rejected credential
    always clears the session.
    """

    def __init__(
        self,
        base_url: str,
        prefix: str = "/api",
        timeout: float = 15.0,
        credential: Optional[Callable[[], Optional[str]]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        prefix = prefix.strip("/")
        self.prefix = f"/{prefix}" if prefix else ""
        self.timeout = timeout
        self._credential = credential or (lambda: None)
        self._http = session or requests.Session()
        self._http.headers.update({"Content-Type": "application/json"})

    def bind_credential(self, credential: Callable[[], Optional[str]]) -> None:
        self._credential = credential

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.prefix}{path}"

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return resp.reason or "Request failed"

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        token = self._credential()
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        try:
            resp = self._http.request(
                method,
                self._url(path),
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise GatewayError(None, str(e)) from e

        if resp.status_code == 401:
            raise AuthError(
                self._error_message(resp), credential_sent=bool(token)
            )
        if not resp.ok:
            message = self._error_message(resp)
            logger.warning(f"{method} {path} -> {resp.status_code}: {message}")
            raise GatewayError(resp.status_code, message)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise GatewayError(resp.status_code, "Malformed response body") from e

    # --- auth ---

    def login(self, email: str, password: str) -> AuthResult:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        return _parse(AuthResult, data)

    def register(self, name: str, email: str, password: str) -> AuthResult:
        data = self._request(
            "POST",
            "/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        return _parse(AuthResult, data)

    def get_profile(self) -> Identity:
        data = self._request("GET", "/auth/profile")
        return _parse(Identity, _unwrap(data, "user"))

    # --- menu ---

    def list_menu(self) -> list[MenuItem]:
        data = self._request("GET", "/menu")
        return [_parse(MenuItem, item) for item in _unwrap(data, "items") or []]

    def create_menu_item(self, draft: MenuItemDraft) -> Optional[MenuItem]:
        data = self._request("POST", "/menu", json=draft.to_wire())
        data = _unwrap(data, "item")
        return _parse(MenuItem, data) if isinstance(data, dict) else None

    def update_menu_item(self, item_id: str, draft: MenuItemDraft) -> Optional[MenuItem]:
        data = self._request("PUT", f"/menu/{item_id}", json=draft.to_wire())
        data = _unwrap(data, "item")
        return _parse(MenuItem, data) if isinstance(data, dict) else None

    def delete_menu_item(self, item_id: str) -> None:
        self._request("DELETE", f"/menu/{item_id}")

    # --- orders ---

    def create_order(self, request: OrderRequest) -> Optional[Order]:
        data = self._request("POST", "/orders", json=request.to_wire())
        data = _unwrap(data, "order")
        if isinstance(data, dict) and "_id" in data:
            return _parse(Order, data)
        return None

    def list_my_orders(self) -> list[Order]:
        data = self._request("GET", "/orders/my")
        return [_parse(Order, o) for o in _unwrap(data, "orders") or []]

    def list_all_orders(self, page: int = 1) -> list[Order]:
        data = self._request("GET", "/orders", params={"page": page})
        return [_parse(Order, o) for o in _unwrap(data, "orders") or []]

    def update_order_status(self, order_id: str, status: str) -> None:
        self._request("PUT", f"/orders/{order_id}/status", json={"status": status})

    # --- analytics ---

    def get_analytics(self, start_date: str, end_date: str) -> DailyAnalytics:
        data = self._request(
            "GET",
            "/analytics/daily",
            params={"startDate": start_date, "endDate": end_date},
        )
        return _parse(DailyAnalytics, data or {})
