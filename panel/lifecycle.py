"""
Panel lifecycle: at most one live panel, each owning its own connection,
execution engine and message router
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from backend.connection_manager import ConnectionManager
from core.logging_config import log_with_context
from events import event_bus, EventTypes
from execution.engine import ScriptExecutionEngine
from protocol.router import MessageRouter
from storage.persistence import PersistentStore
from .channel import Disposable, PanelChannel
from .html import render_panel_html

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[str, str], PanelChannel]


class FunctionTesterPanel:
    """
    One open panel. Must be constructed on a running event loop: the
    router's startup sequence is scheduled from the constructor.
    """

    def __init__(self,
                 host: "PanelHost",
                 channel: PanelChannel,
                 store: PersistentStore,
                 client_factory: Optional[Callable[[str, str], Any]] = None,
                 panel_config: Optional[Dict[str, Any]] = None,
                 execution_config: Optional[Dict[str, Any]] = None):
        panel_config = panel_config or {}
        execution_config = execution_config or {}

        self.host = host
        self.channel = channel
        self.connection_manager = ConnectionManager(client_factory)
        self.engine = ScriptExecutionEngine(
            self.connection_manager,
            client_parameter=execution_config.get("client_parameter", "supabase"),
            variables_parameter=execution_config.get("variables_parameter", "variables"),
        )
        self.router = MessageRouter(
            self.connection_manager, self.engine, store, channel.post_message
        )

        self.disposed = False
        self._tasks: Set[asyncio.Task] = set()
        self._subscriptions: List[Disposable] = []

        channel.html = render_panel_html(
            title=channel.title,
            websocket_url=channel.websocket_url,
            default_code=panel_config.get("default_code", ""),
            default_variables=panel_config.get("default_variables", "{}"),
        )
        self._subscriptions.append(channel.on_did_receive_message(self._on_message))
        self._subscriptions.append(channel.on_did_dispose(self.dispose))
        self.router.mark_ready()

        self.startup_task = self._spawn(self.router.start())

        log_with_context(logger, logging.INFO, "Panel opened",
                         view_type=channel.view_type, websocket_url=channel.websocket_url)
        event_bus.emit(EventTypes.PANEL_OPENED, {
            "view_type": channel.view_type,
            "title": channel.title
        }, source="FunctionTesterPanel")

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _on_message(self, message: Any):
        if self.disposed:
            logger.debug("Panel disposed, dropping inbound message")
            return
        self._spawn(self.router.dispatch(message))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Dispatch task failed", exc_info=task.exception())

    def reveal(self):
        self.channel.reveal()
        event_bus.emit(EventTypes.PANEL_REVEALED, {
            "view_type": self.channel.view_type
        }, source="FunctionTesterPanel")

    def dispose(self):
        """Tear the panel down. Later calls are no-ops; in-flight work is not cancelled."""
        if self.disposed:
            return
        self.disposed = True

        self.host._release(self)
        self.router.dispose()
        self.channel.dispose()

        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()

        logger.info(f"Panel disposed ({len(self._tasks)} tasks still in flight)")
        event_bus.emit(EventTypes.PANEL_DISPOSED, {
            "view_type": self.channel.view_type,
            "in_flight": len(self._tasks)
        }, source="FunctionTesterPanel")


class PanelHost:
    """Single owner of the active panel"""

    def __init__(self,
                 store: PersistentStore,
                 channel_factory: ChannelFactory,
                 client_factory: Optional[Callable[[str, str], Any]] = None,
                 panel_config: Optional[Dict[str, Any]] = None,
                 execution_config: Optional[Dict[str, Any]] = None):
        self.store = store
        self.channel_factory = channel_factory
        self.client_factory = client_factory
        self.panel_config = panel_config or {}
        self.execution_config = execution_config or {}
        self.current_panel: Optional[FunctionTesterPanel] = None
        self.panels_created = 0

    def create_or_show(self) -> FunctionTesterPanel:
        """Reveal the active panel, or open a fresh one if there is none"""
        if self.current_panel is not None:
            self.current_panel.reveal()
            return self.current_panel

        channel = self.channel_factory(
            self.panel_config.get("view_type", "supabaseTester"),
            self.panel_config.get("title", "Supabase Function Tester"),
        )
        panel = FunctionTesterPanel(
            self,
            channel,
            self.store,
            client_factory=self.client_factory,
            panel_config=self.panel_config,
            execution_config=self.execution_config,
        )
        self.current_panel = panel
        self.panels_created += 1
        return panel

    def _release(self, panel: FunctionTesterPanel):
        if self.current_panel is panel:
            self.current_panel = None

    def dispose(self):
        if self.current_panel is not None:
            self.current_panel.dispose()
