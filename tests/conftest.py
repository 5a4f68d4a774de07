import threading
from decimal import Decimal
from typing import Optional

import pytest

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import AuthError, GatewayError
from feastflow_mcp.models import (
    AuthResult,
    DailyAnalytics,
    Identity,
    MenuItem,
    MenuItemDraft,
    Order,
    OrderLine,
    OrderRequest,
)
from feastflow_mcp.notify import Notifier
from feastflow_mcp.state import CartStore, StorefrontState
from feastflow_mcp.storage import MemoryStorage

PIZZA = MenuItem(id="pizza", name="Pizza", price=Decimal("10.00"), image="pizza.jpg")
SALAD = MenuItem(id="salad", name="Salad", price=Decimal("5.00"))

USER = Identity(id="u1", name="Ada", email="ada@example.com", role="user")
ADMIN = Identity(id="a1", name="Root", email="root@example.com", role="admin")


class FakeGateway:
    """In-process stand-in for ApiGateway with the same call surface."""

    def __init__(self):
        self.menu = [PIZZA, SALAD]
        self.accounts = {
            USER.email: ("secret1", USER),
            ADMIN.email: ("secret2", ADMIN),
        }
        self.orders: list[Order] = []
        self.calls: list[tuple] = []
        self.fail: dict[str, Exception] = {}
        self.analytics = DailyAnalytics()
        # Set to make login() block until released; used for stale-response tests.
        self.hold_login: Optional[threading.Event] = None
        self.login_started = threading.Event()
        self._credential = lambda: None

    def bind_credential(self, credential):
        self._credential = credential

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise self.fail[name]

    def called(self, name) -> bool:
        return any(c[0] == name for c in self.calls)

    def login(self, email, password):
        self._call("login", email)
        self.login_started.set()
        if self.hold_login is not None:
            self.hold_login.wait(5)
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AuthError("Invalid credentials", credential_sent=bool(self._credential()))
        return AuthResult(token=f"token-{account[1].id}", user=account[1])

    def register(self, name, email, password):
        self._call("register", email)
        if email in self.accounts:
            raise GatewayError(400, "User already exists")
        identity = Identity(id=f"u{len(self.accounts) + 1}", name=name, email=email)
        self.accounts[email] = (password, identity)
        return AuthResult(token=f"token-{identity.id}", user=identity)

    def get_profile(self):
        self._call("get_profile")
        token = self._credential()
        for _, identity in self.accounts.values():
            if token == f"token-{identity.id}":
                return identity
        raise AuthError("Token expired", credential_sent=bool(token))

    def list_menu(self):
        self._call("list_menu")
        return list(self.menu)

    def create_menu_item(self, draft: MenuItemDraft):
        self._call("create_menu_item", draft)
        item = MenuItem(id=f"m{len(self.menu) + 1}", **draft.model_dump())
        self.menu.append(item)
        return item

    def update_menu_item(self, item_id, draft: MenuItemDraft):
        self._call("update_menu_item", item_id, draft)
        item = MenuItem(id=item_id, **draft.model_dump())
        self.menu = [item if m.id == item_id else m for m in self.menu]
        return item

    def delete_menu_item(self, item_id):
        self._call("delete_menu_item", item_id)
        self.menu = [m for m in self.menu if m.id != item_id]

    def create_order(self, request: OrderRequest):
        self._call("create_order", request)
        prices = {m.id: m for m in self.menu}
        lines = [
            OrderLine(
                menu_item_id=l.menu_item,
                name=prices[l.menu_item].name,
                price=prices[l.menu_item].price,
                quantity=l.quantity,
            )
            for l in request.items
        ]
        order = Order(
            id=f"65f0c0ffee{len(self.orders) + 1:06d}",
            lines=lines,
            total_price=sum((l.line_total for l in lines), Decimal("0")),
            status="received",
            delivery_details=request.delivery_details,
            customer_name=request.delivery_details.name,
            address=request.delivery_details.address,
            phone=request.delivery_details.phone,
            payment_method=request.payment_method.value,
        )
        self.orders.append(order)
        return order

    def list_my_orders(self):
        self._call("list_my_orders")
        return list(self.orders)

    def list_all_orders(self, page=1):
        self._call("list_all_orders", page)
        return list(self.orders)

    def update_order_status(self, order_id, status):
        self._call("update_order_status", order_id, status)

    def get_analytics(self, start_date, end_date):
        self._call("get_analytics", start_date, end_date)
        return self.analytics


class FakeChannel:
    def __init__(self):
        self.handlers: dict[str, list] = {}
        self.connected = False
        self.connects = 0
        self.fail_connect: Optional[Exception] = None

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event, handler):
        if handler in self.handlers.get(event, []):
            self.handlers[event].remove(handler)

    async def connect(self):
        if self.fail_connect:
            raise self.fail_connect
        self.connects += 1
        self.connected = True

    async def disconnect(self):
        self.connected = False

    def emit(self, event, payload):
        for handler in list(self.handlers.get(event, [])):
            handler(payload)


@pytest.fixture(autouse=True)
def _live_checkout(monkeypatch):
    monkeypatch.delenv("DRY_RUN", raising=False)


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def notifier():
    return Notifier()


@pytest.fixture()
def cart(storage, notifier):
    return CartStore(storage, notifier)


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def channel():
    return FakeChannel()


@pytest.fixture()
def config(tmp_path):
    return StorefrontConfig(
        checkout={
            "audit_log_path": str(tmp_path / "orders.log"),
            "payment_delay_seconds": 0,
        }
    )


@pytest.fixture()
def state(config, storage, gateway, notifier, channel):
    return StorefrontState(
        config=config,
        storage=storage,
        gateway=gateway,
        notifier=notifier,
        channel_factory=lambda: channel,
    )
