#!/usr/bin/env python3
"""
Main application - Serves the Supabase function tester panel
"""

import argparse
import asyncio
import signal
import sys
import webbrowser
from typing import Any, Callable, Dict, List, Optional

from config import EXECUTION_CONFIG, LOGGING_CONFIG, PANEL_CONFIG, SERVER_CONFIG, STORAGE_CONFIG
from core.config_validator import ConfigValidationError, ConfigValidator, validate_startup_config
from core.logging_config import get_logger, setup_logging
from panel import PanelServer
from storage import JsonFileKeyValueStore, PersistentStore


class FunctionTesterApp:
    def __init__(self,
                 server_config: Dict[str, Any],
                 storage_config: Dict[str, Any],
                 panel_config: Optional[Dict[str, Any]] = None,
                 execution_config: Optional[Dict[str, Any]] = None,
                 client_factory: Optional[Callable[[str, str], Any]] = None):
        self.logger = get_logger(__name__)

        # Installation-scoped state shared by every panel
        self.kv_store = JsonFileKeyValueStore(storage_config["path"])
        self.store = PersistentStore()
        self.store.initialize(self.kv_store)

        self.server = PanelServer(
            self.store,
            host=server_config.get("host", "localhost"),
            http_port=server_config.get("http_port", 8080),
            websocket_port=server_config.get("websocket_port", 8765),
            client_factory=client_factory,
            panel_config=panel_config,
            execution_config=execution_config,
        )
        self.open_browser = server_config.get("open_browser", True)

        self.running = False
        self._stop_event: Optional[asyncio.Event] = None

    async def run(self):
        """Start the servers and block until a stop is requested"""
        self._stop_event = asyncio.Event()
        await self.server.start()
        self.running = True

        loop = asyncio.get_running_loop()
        handled_signals = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                handled_signals.append(sig)
            except (NotImplementedError, RuntimeError):
                self.logger.debug(f"Signal handlers not supported for {sig.name}")

        self.logger.info("System ready", extra={"extra_data": {
            "page": self.server.page_url,
            "websocket": self.server.websocket_url,
            "state_file": str(self.kv_store.path)
        }})
        print(f"🖥️  Function tester: {self.server.page_url}")
        print(f"🌐 Message channel: {self.server.websocket_url}")

        if self.open_browser:
            self.open_panel()

        try:
            await self._stop_event.wait()
        finally:
            for sig in handled_signals:
                loop.remove_signal_handler(sig)
            await self.stop()

    def open_panel(self):
        """Open the panel page in the default browser"""
        try:
            webbrowser.open(self.server.page_url)
        except webbrowser.Error as e:
            self.logger.warning(f"Could not open browser: {e}")

    def request_stop(self):
        print("\n\nShutting down gracefully...")
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self):
        """Stop the function tester"""
        if not self.running:
            return
        self.running = False
        self.logger.info("Stopping function tester")

        try:
            await self.server.stop()
        except Exception as e:
            self.logger.error(f"Error stopping panel servers: {e}", exc_info=True)

        self.logger.info("Function tester stopped")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run ad-hoc scripts against a live Supabase connection from a browser panel"
    )
    parser.add_argument("--host", default=SERVER_CONFIG["host"],
                        help="Interface the panel servers bind to")
    parser.add_argument("--http-port", type=int, default=SERVER_CONFIG["http_port"],
                        help="Port of the panel page")
    parser.add_argument("--websocket-port", type=int, default=SERVER_CONFIG["websocket_port"],
                        help="Port of the panel message channel")
    parser.add_argument("--state-file", default=STORAGE_CONFIG["path"],
                        help="JSON file holding the saved configuration and session")
    parser.add_argument("--open-browser", dest="open_browser", action="store_true",
                        default=SERVER_CONFIG["open_browser"],
                        help="Open the panel in the default browser on startup")
    parser.add_argument("--no-browser", dest="open_browser", action="store_false",
                        help="Do not open a browser")
    parser.add_argument("--log-level", default=LOGGING_CONFIG["log_level"],
                        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    return parser.parse_args(argv)


def run_application(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    server_config = dict(SERVER_CONFIG, host=args.host, http_port=args.http_port,
                         websocket_port=args.websocket_port, open_browser=args.open_browser)
    storage_config = dict(STORAGE_CONFIG, path=args.state_file)
    logging_config = dict(LOGGING_CONFIG, log_level=args.log_level)

    # Validate configuration first (before logging setup)
    try:
        validate_startup_config(ConfigValidator(
            server_config=server_config,
            storage_config=storage_config,
            logging_config=logging_config,
            execution_config=EXECUTION_CONFIG,
        ))
    except ConfigValidationError as e:
        print(f"❌ Configuration validation failed: {e}")
        print("Please fix the configuration errors and try again.")
        return 1

    setup_logging(logging_config)
    logger = get_logger(__name__)
    logger.info("Starting Supabase Function Tester")

    app = FunctionTesterApp(server_config, storage_config, PANEL_CONFIG, EXECUTION_CONFIG)
    try:
        asyncio.run(app.run())
    except Exception as e:
        logger.error("Function tester failed", exc_info=True, extra={
            "extra_data": {"error_type": type(e).__name__, "error_message": str(e)}
        })
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run_application())
