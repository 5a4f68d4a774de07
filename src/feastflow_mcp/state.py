import json
import logging
from dataclasses import asdict, dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from feastflow_mcp.config import StorefrontConfig
from feastflow_mcp.errors import PersistenceError
from feastflow_mcp.gateway import ApiGateway
from feastflow_mcp.models import MenuItem
from feastflow_mcp.notify import Notifier
from feastflow_mcp.push import PushChannel, SocketIOChannel
from feastflow_mcp.session import SessionStore
from feastflow_mcp.storage import CART_KEY, JsonFileStorage, StoragePort
from feastflow_mcp.sync import OrderBoard, OrderStatusSync

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    id: str
    name: str
    unit_price: Decimal
    image: Optional[str] = None
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["unit_price"] = str(self.unit_price)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "CartLine":
        if not isinstance(data, dict):
            raise PersistenceError(f"cart line is not an object: {data!r}")
        try:
            line = cls(
                id=str(data["id"]),
                name=str(data["name"]),
                unit_price=Decimal(str(data["unit_price"])),
                image=data.get("image"),
                quantity=int(data.get("quantity", 1)),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise PersistenceError(f"bad cart line {data!r}: {e}") from e
        if not line.unit_price.is_finite():
            raise PersistenceError(f"bad cart line price {data!r}")
        return line


def decode_cart(raw: str) -> list[CartLine]:
    """Parse a persisted cart. Duplicate ids are merged, empty lines dropped."""
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise PersistenceError(f"cart is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise PersistenceError("cart is not a list")

    lines: list[CartLine] = []
    for entry in data:
        line = CartLine.from_dict(entry)
        if line.quantity < 1:
            continue
        existing = next((l for l in lines if l.id == line.id), None)
        if existing:
            existing.quantity += line.quantity
        else:
            lines.append(line)
    return lines


def encode_cart(lines: list[CartLine]) -> str:
    return json.dumps([line.to_dict() for line in lines])


class CartStore:
    """The pending order. Totals are always recomputed from the lines."""

    def __init__(self, storage: StoragePort, notifier: Optional[Notifier] = None):
        self._storage = storage
        self._notifier = notifier or Notifier()
        self.lines: list[CartLine] = self._load()

    def _load(self) -> list[CartLine]:
        raw = self._storage.get(CART_KEY)
        if raw is None:
            return []
        try:
            return decode_cart(raw)
        except PersistenceError as e:
            logger.warning(f"Discarding persisted cart: {e}")
            return []

    def _save(self) -> None:
        self._storage.set(CART_KEY, encode_cart(self.lines))

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_price(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def is_empty(self) -> bool:
        return not self.lines

    def find(self, item_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.id == item_id:
                return line
        return None

    def add_item(self, item: MenuItem) -> CartLine:
        existing = self.find(item.id)
        if existing:
            existing.quantity += 1
            self._save()
            self._notifier.success("Quantity updated")
            return existing

        line = CartLine(
            id=item.id, name=item.name, unit_price=item.price, image=item.image
        )
        self.lines.append(line)
        self._save()
        self._notifier.success(f"{item.name} added to cart")
        return line

    def increase_qty(self, item_id: str) -> None:
        line = self.find(item_id)
        if line is None:
            return
        line.quantity += 1
        self._save()

    def decrease_qty(self, item_id: str) -> None:
        line = self.find(item_id)
        if line is None:
            return
        if line.quantity <= 1:
            self.lines.remove(line)
        else:
            line.quantity -= 1
        self._save()

    def remove_item(self, item_id: str) -> bool:
        line = self.find(item_id)
        if line is None:
            return False
        self.lines.remove(line)
        self._save()
        self._notifier.success("Item removed")
        return True

    def clear_cart(self) -> None:
        self.lines = []
        self._save()

    def erase(self) -> None:
        """Drop the in-memory lines and the persisted copy."""
        self.lines = []
        self._storage.remove(CART_KEY)

    def snapshot(self) -> list[CartLine]:
        return [replace(line) for line in self.lines]

    def restore(self, snapshot: list[CartLine]) -> None:
        self.lines = [replace(line) for line in snapshot]
        self._save()

    def to_dict(self, currency_symbol: str = "$") -> dict[str, Any]:
        return {
            "items": [
                {
                    "item_id": line.id,
                    "name": line.name,
                    "unit_price": f"{line.unit_price:.2f}",
                    "quantity": line.quantity,
                    "line_total": f"{line.line_total:.2f}",
                    "image": line.image,
                }
                for line in self.lines
            ],
            "total_items": self.total_items,
            "total_price": f"{self.total_price:.2f}",
            "display_total": f"{currency_symbol}{self.total_price:.2f}",
        }


@dataclass
class StorefrontState:
    config: StorefrontConfig
    storage: StoragePort
    gateway: ApiGateway
    notifier: Notifier = field(default_factory=Notifier)
    channel_factory: Optional[Callable[[], PushChannel]] = None
    menu_cache: list[MenuItem] = field(default_factory=list)

    def __post_init__(self):
        self.cart = CartStore(self.storage, self.notifier)
        self.session = SessionStore(self.storage, self.gateway, self.cart, self.notifier)
        self.my_orders = OrderBoard()
        self.admin_orders = OrderBoard()
        factory = self.channel_factory or (
            lambda: SocketIOChannel(self.config.push_url, self.config.push.transports)
        )
        self.tracker = OrderStatusSync(
            self.my_orders, factory, self.notifier, event=self.config.push.event
        )
        self.session.add_clear_listener(self.close_views)

    @classmethod
    def from_config(cls, config: StorefrontConfig) -> "StorefrontState":
        gateway = ApiGateway(
            config.api.base_url,
            prefix=config.api.prefix,
            timeout=config.api.timeout_seconds,
        )
        return cls(
            config=config,
            storage=JsonFileStorage(config.storage.state_path),
            gateway=gateway,
        )

    def close_views(self) -> None:
        """Drop everything fetched for the previous session."""
        self.tracker.detach()
        self.my_orders.close()
        self.admin_orders.close()

    def find_menu_item(self, item_id: str) -> Optional[MenuItem]:
        for item in self.menu_cache:
            if item.id == item_id:
                return item
        return None
