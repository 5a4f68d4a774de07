import logging
from typing import Any, Callable, Optional, Protocol

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from feastflow_mcp.errors import GatewayError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class PushChannel(Protocol):
    """Real-time connection delivering server events. Reconnection is its own business."""

    def on(self, event: str, handler: Handler) -> None: ...

    def off(self, event: str, handler: Handler) -> None: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...


class SocketIOChannel:
    """PushChannel over a Socket.IO async client."""

    def __init__(
        self,
        url: str,
        transports: Optional[list[str]] = None,
        client: Optional[socketio.AsyncClient] = None,
    ):
        self.url = url
        self.transports = transports or ["websocket"]
        self._client = client or socketio.AsyncClient()
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> None:
        if event not in self._handlers:
            self._handlers[event] = []

            async def dispatch(data=None, _event=event):
                for h in list(self._handlers.get(_event, [])):
                    h(data)

            self._client.on(event, dispatch)
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def connect(self) -> None:
        try:
            await self._client.connect(self.url, transports=self.transports)
        except SocketConnectionError as e:
            logger.warning(f"Push channel connection to {self.url} failed: {e}")
            raise GatewayError(None, f"Push channel unavailable: {e}") from e
        logger.info(f"Push channel connected to {self.url}")

    async def disconnect(self) -> None:
        await self._client.disconnect()
        logger.info("Push channel disconnected")
