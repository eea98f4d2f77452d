"""
Panel servers: websocket message channel and HTTP page
"""

import logging
from typing import Any, Callable, Dict, Optional

import websockets
from aiohttp import web

from core.serialization import encode_json
from events import event_bus
from storage.persistence import PersistentStore
from .channel import WebSocketPanelChannel
from .lifecycle import PanelHost

logger = logging.getLogger(__name__)


class PanelServer:
    """
    Serves the panel page over HTTP and its message channel over websockets.

    Both a page load and a websocket connection count as an "open" request
    for the panel.
    """

    def __init__(self,
                 store: PersistentStore,
                 host: str = "localhost",
                 http_port: int = 8080,
                 websocket_port: int = 8765,
                 client_factory: Optional[Callable[[str, str], Any]] = None,
                 panel_config: Optional[Dict[str, Any]] = None,
                 execution_config: Optional[Dict[str, Any]] = None):
        """
        Args:
            store: Initialized persistent store shared by every panel
            host: Interface both servers bind to
            http_port: Page server port, 0 for any free port
            websocket_port: Message channel port, 0 for any free port
            client_factory: Backend client factory, ``supabase.AsyncClient`` if None
        """
        self.host = host
        self.http_port = http_port
        self.websocket_port = websocket_port

        self.panel_host = PanelHost(
            store,
            self.create_channel,
            client_factory=client_factory,
            panel_config=panel_config,
            execution_config=execution_config,
        )

        self.ws_server = None
        self.http_runner: Optional[web.AppRunner] = None
        self.running = False

    @property
    def page_url(self) -> str:
        return f"http://{self.host}:{self.http_port}/"

    @property
    def websocket_url(self) -> str:
        return f"ws://{self.host}:{self.websocket_port}"

    def create_channel(self, view_type: str, title: str) -> WebSocketPanelChannel:
        return WebSocketPanelChannel(
            view_type,
            title,
            websocket_url=self.websocket_url,
            page_url=self.page_url,
        )

    async def handle_client(self, websocket, path=None):
        """Handle a WebSocket client connection"""
        panel = self.panel_host.create_or_show()
        await panel.channel.attach(websocket)

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.handle_page)
        app.router.add_get("/health", self.handle_health)
        return app

    async def handle_page(self, request: web.Request) -> web.Response:
        panel = self.panel_host.create_or_show()
        return web.Response(text=panel.channel.html, content_type="text/html")

    async def handle_health(self, request: web.Request) -> web.Response:
        panel = self.panel_host.current_panel
        status = {
            "service": "Supabase Function Tester",
            "status": "running" if self.running else "stopped",
            "page": self.page_url,
            "websocket": self.websocket_url,
            "panels_created": self.panel_host.panels_created,
            "panel": None,
            "events": event_bus.get_stats(),
        }
        if panel is not None:
            status["panel"] = {
                "clients": len(getattr(panel.channel, "clients", ())),
                "in_flight": panel.in_flight,
                "connected": panel.connection_manager.is_initialized,
                "router": panel.router.get_stats(),
                "execution": panel.engine.get_execution_stats(),
            }
        return web.json_response(status, dumps=encode_json)

    async def start(self):
        """Start both servers; ports given as 0 are replaced by the bound ones"""
        logger.info(f"Starting WebSocket server on port {self.websocket_port}")
        self.ws_server = await websockets.serve(self.handle_client, self.host, self.websocket_port)
        self.websocket_port = list(self.ws_server.sockets)[0].getsockname()[1]
        logger.info(f"WebSocket server running on {self.websocket_url}")

        self.http_runner = web.AppRunner(self.build_app())
        await self.http_runner.setup()
        site = web.TCPSite(self.http_runner, self.host, self.http_port)
        await site.start()
        self.http_port = self.http_runner.addresses[0][1]
        logger.info(f"HTTP server running on {self.page_url}")

        self.running = True

    async def stop(self):
        """Dispose the active panel and stop both servers"""
        logger.info("Stopping panel servers...")
        self.running = False
        self.panel_host.dispose()

        if self.ws_server is not None:
            self.ws_server.close()
            await self.ws_server.wait_closed()
            self.ws_server = None
            logger.info("WebSocket server stopped")

        if self.http_runner is not None:
            await self.http_runner.cleanup()
            self.http_runner = None
            logger.info("HTTP server stopped")
