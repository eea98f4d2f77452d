"""
Message channels between a panel and its browser-hosted UI surface
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Set

import websockets

from core.serialization import decode_json, encode_json
from events import event_bus, EventTypes

logger = logging.getLogger(__name__)


class Disposable:
    """Handle that releases a subscription. Disposing twice is a no-op."""

    def __init__(self, callback: Callable[[], None]):
        self._callback: Optional[Callable[[], None]] = callback

    @property
    def is_disposed(self) -> bool:
        return self._callback is None

    def dispose(self):
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()


class PanelChannel:
    """
    Base channel: HTML slot, outbound envelopes and inbound listeners.

    Subclasses implement ``_deliver`` for their transport.
    """

    def __init__(self, view_type: str, title: str):
        self.view_type = view_type
        self.title = title
        self.html = ""
        self.websocket_url: Optional[str] = None
        self.disposed = False
        self.reveal_count = 0

        self._message_listeners: List[Callable[[Any], None]] = []
        self._dispose_listeners: List[Callable[[], None]] = []

        self.stats = {
            "messages_received": 0,
            "messages_posted": 0,
            "delivery_failures": 0,
        }

    async def post_message(self, message: Any) -> bool:
        """
        Send one envelope to the UI surface.

        Returns:
            True if the envelope was delivered or queued

        Raises:
            SerializationError: If the envelope cannot be encoded as JSON
        """
        if self.disposed:
            logger.debug("Channel disposed, not posting %s", _command_of(message))
            return False

        payload = encode_json(message)
        try:
            delivered = await self._deliver(payload)
        except Exception as e:
            self.stats["delivery_failures"] += 1
            logger.error(f"Error delivering {_command_of(message)}: {e}")
            return False

        if delivered:
            self.stats["messages_posted"] += 1
        else:
            self.stats["delivery_failures"] += 1
        return delivered

    async def _deliver(self, payload: str) -> bool:
        raise NotImplementedError

    def on_did_receive_message(self, listener: Callable[[Any], None]) -> Disposable:
        self._message_listeners.append(listener)
        return Disposable(lambda: _discard(self._message_listeners, listener))

    def on_did_dispose(self, listener: Callable[[], None]) -> Disposable:
        self._dispose_listeners.append(listener)
        return Disposable(lambda: _discard(self._dispose_listeners, listener))

    def listener_count(self) -> int:
        return len(self._message_listeners) + len(self._dispose_listeners)

    def reveal(self):
        self.reveal_count += 1

    def dispose(self):
        if self.disposed:
            return
        self.disposed = True
        self._on_dispose()

        listeners = list(self._dispose_listeners)
        self._dispose_listeners.clear()
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.error(f"Error in dispose listener: {e}", exc_info=True)

    def _on_dispose(self):
        pass

    def _fire_message(self, message: Any):
        if self.disposed:
            return
        self.stats["messages_received"] += 1
        for listener in list(self._message_listeners):
            try:
                listener(message)
            except Exception as e:
                logger.error(f"Error in message listener: {e}", exc_info=True)


class WebSocketPanelChannel(PanelChannel):
    """
    Channel backed by browser websocket connections.

    Envelopes posted before any connection attaches are buffered and flushed
    to the first one. The channel disposes itself when its last connection
    goes away.
    """

    def __init__(self, view_type: str, title: str,
                 websocket_url: Optional[str] = None,
                 page_url: Optional[str] = None):
        super().__init__(view_type, title)
        self.websocket_url = websocket_url
        self.page_url = page_url
        self.clients: Set[Any] = set()
        self._pending: List[str] = []
        self._close_tasks: Set[asyncio.Task] = set()
        self._flush_lock = asyncio.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def attach(self, websocket):
        """Serve one browser connection until it closes"""
        if self.disposed:
            await websocket.close(code=1001, reason="Panel disposed")
            return

        self.clients.add(websocket)
        logger.info(f"Client connected: {getattr(websocket, 'remote_address', None)} "
                    f"(Total: {len(self.clients)})")
        event_bus.emit(EventTypes.CHANNEL_CLIENT_CONNECT, {
            "clients": len(self.clients)
        }, source="WebSocketPanelChannel")

        try:
            await self._flush_pending(websocket)
            async for frame in websocket:
                self._fire_message(self._decode(frame))
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info(f"Client disconnected (Total: {len(self.clients)})")
            event_bus.emit(EventTypes.CHANNEL_CLIENT_DISCONNECT, {
                "clients": len(self.clients)
            }, source="WebSocketPanelChannel")
            if not self.clients and not self.disposed:
                self.dispose()

    async def _flush_pending(self, websocket):
        # an envelope leaves the buffer only once sent; one flush at a time
        async with self._flush_lock:
            while self._pending and websocket in self.clients:
                await websocket.send(self._pending[0])
                self._pending.pop(0)

    def _decode(self, frame: Any) -> Any:
        if isinstance(frame, bytes):
            frame = frame.decode("utf-8", errors="replace")
        try:
            return decode_json(frame)
        except ValueError:
            # Handed on as-is so the router can answer with an error envelope
            return frame

    async def _deliver(self, payload: str) -> bool:
        if not self.clients:
            self._pending.append(payload)
            return True

        delivered = False
        for client in list(self.clients):
            try:
                await client.send(payload)
                delivered = True
            except (websockets.exceptions.ConnectionClosed,
                    websockets.exceptions.InvalidState, OSError) as e:
                logger.warning(f"Could not send to client: {e}")
        return delivered

    def _on_dispose(self):
        self._pending.clear()
        if not self.clients:
            return
        loop = asyncio.get_running_loop()
        for client in list(self.clients):
            task = loop.create_task(client.close(code=1001, reason="Panel disposed"))
            self._close_tasks.add(task)
            task.add_done_callback(self._close_tasks.discard)


def _discard(listeners: List[Any], listener: Any):
    if listener in listeners:
        listeners.remove(listener)


def _command_of(message: Any) -> Any:
    return message.get("command") if isinstance(message, dict) else None
