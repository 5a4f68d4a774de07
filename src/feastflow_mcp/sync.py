"""Locally held order views and their reconciliation with pushed status events.

Events carry no sequence number, so the board applies them last-write-wins:
whatever status arrives is stored verbatim, even one that moves an order
backwards. Events for orders the board does not hold are dropped.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Optional, Protocol

from pydantic import ValidationError as SchemaError

from feastflow_mcp.models import Order, OrderStatusEvent
from feastflow_mcp.notify import Notifier
from feastflow_mcp.push import PushChannel

logger = logging.getLogger(__name__)

ORDER_STATUS_EVENT = "orderStatusUpdated"


class Snapshottable(Protocol):
    def snapshot(self) -> Any: ...

    def restore(self, snapshot: Any) -> None: ...


@contextmanager
def rollback_on_error(store: Snapshottable) -> Iterator[Any]:
    """Snapshot, let the block apply changes, restore the snapshot if it raises."""
    snapshot = store.snapshot()
    try:
        yield snapshot
    except Exception:
        store.restore(snapshot)
        raise


class OrderBoard:
    """Orders fetched for one view. Orders are replaced, never edited in place."""

    def __init__(self):
        self.orders: list[Order] = []
        self._generation = 0

    def __len__(self) -> int:
        return len(self.orders)

    def get(self, order_id: str) -> Optional[Order]:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    async def load(self, fetch: Callable[[], Awaitable[list[Order]]]) -> bool:
        """Replace the board with a fresh fetch unless a newer load or close() superseded it."""
        self._generation += 1
        generation = self._generation
        orders = await fetch()
        if generation != self._generation:
            logger.debug("Dropping stale order fetch")
            return False
        self.orders = list(orders)
        return True

    def close(self) -> None:
        self._generation += 1
        self.orders = []

    def set_status(self, order_id: str, status: str) -> Optional[Order]:
        for i, order in enumerate(self.orders):
            if order.id == order_id:
                updated = order.model_copy(update={"status": status})
                self.orders[i] = updated
                return updated
        return None

    def apply_status(self, event: OrderStatusEvent) -> Optional[Order]:
        return self.set_status(event.order_id, event.status)

    def snapshot(self) -> list[Order]:
        return list(self.orders)

    def restore(self, snapshot: list[Order]) -> None:
        self.orders = list(snapshot)


class OrderStatusSync:
    """Keeps an OrderBoard current from the push channel while a view is open."""

    def __init__(
        self,
        board: OrderBoard,
        channel_factory: Callable[[], PushChannel],
        notifier: Optional[Notifier] = None,
        event: str = ORDER_STATUS_EVENT,
    ):
        self.board = board
        self.event = event
        self._channel_factory = channel_factory
        self._notifier = notifier or Notifier()
        self._channel: Optional[PushChannel] = None
        self._closing: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._channel is not None

    async def start(self) -> None:
        if self._channel is not None:
            return
        channel = self._channel_factory()
        channel.on(self.event, self.handle)
        try:
            await channel.connect()
        except Exception:
            channel.off(self.event, self.handle)
            raise
        self._channel = channel
        logger.info(f"Listening for {self.event} events")

    async def stop(self) -> None:
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.off(self.event, self.handle)
            await channel.disconnect()
            logger.info(f"Stopped listening for {self.event} events")
        closing, self._closing = self._closing, None
        if closing is not None and not closing.done():
            await closing

    def detach(self) -> None:
        """Stop applying events immediately; the disconnect runs on the event loop."""
        channel, self._channel = self._channel, None
        if channel is None:
            return
        channel.off(self.event, self.handle)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop to disconnect the {self.event} channel on")
            return
        self._closing = loop.create_task(channel.disconnect())
        logger.info(f"Detached from {self.event} events")

    def handle(self, payload: Any) -> bool:
        try:
            event = OrderStatusEvent.model_validate(payload)
        except SchemaError as e:
            logger.warning(f"Ignoring malformed {self.event} payload {payload!r}: {e}")
            return False

        if self.board.apply_status(event) is None:
            logger.debug(f"Ignoring status for unknown order {event.order_id}")
            return False

        self._notifier.success(f"Order status updated: {event.status}")
        return True
