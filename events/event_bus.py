"""
Central event bus for tracking and broadcasting system events
"""

import logging
import time
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Dict, Any, List, Callable, Optional

logger = logging.getLogger(__name__)


class SystemEvent:
    """Represents a system event"""

    def __init__(self, event_type: str, data: Dict[str, Any], source: str = None):
        self.id = str(uuid.uuid4())
        self.type = event_type
        self.data = data
        self.source = source or "system"
        self.timestamp = time.time()
        self.datetime = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "source": self.source,
            "timestamp": self.timestamp,
            "datetime": self.datetime
        }


class EventBus:
    """
    Process-wide event bus.

    Listeners run synchronously on the emitting task, in registration order.
    A failing listener is logged and never affects the emitter.
    """

    def __init__(self, max_history: int = 1000):
        self.listeners: Dict[str, List[Callable]] = defaultdict(list)
        self.event_history: List[SystemEvent] = []
        self.max_history = max_history

        # Performance metrics
        self.event_counts = defaultdict(int)
        self.processing_times = defaultdict(list)

    def emit(self, event_type: str, data: Dict[str, Any], source: str = None) -> SystemEvent:
        """Emit an event to the bus"""
        event = SystemEvent(event_type, data, source)
        start_time = time.perf_counter()

        self.event_counts[event.type] += 1
        self.event_history.append(event)
        if len(self.event_history) > self.max_history:
            self.event_history.pop(0)

        for listener in list(self.listeners.get(event.type, [])):
            try:
                listener(event)
            except Exception:
                logger.exception("Error in event listener for %s", event.type)

        for listener in list(self.listeners.get("*", [])):
            try:
                listener(event)
            except Exception:
                logger.exception("Error in wildcard event listener")

        processing_time = time.perf_counter() - start_time
        self.processing_times[event.type].append(processing_time)
        if len(self.processing_times[event.type]) > 100:
            self.processing_times[event.type].pop(0)

        return event

    def on(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Register a listener for specific event type"""
        self.listeners[event_type].append(callback)

    def on_all(self, callback: Callable[[SystemEvent], None]):
        """Register a listener for all events"""
        self.listeners["*"].append(callback)

    def off(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Remove a listener"""
        if callback in self.listeners[event_type]:
            self.listeners[event_type].remove(callback)

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics"""
        stats = {
            "total_events": sum(self.event_counts.values()),
            "event_counts": dict(self.event_counts),
            "history_size": len(self.event_history),
            "listener_counts": {
                event_type: len(listeners)
                for event_type, listeners in self.listeners.items()
            }
        }

        avg_times = {}
        for event_type, times in self.processing_times.items():
            if times:
                avg_times[event_type] = sum(times) / len(times)
        stats["avg_processing_times"] = avg_times

        return stats

    def get_recent_events(self, count: int = 50, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get recent events from history"""
        events = self.event_history
        if event_type:
            events = [e for e in events if e.type == event_type]

        return [e.to_dict() for e in events[-count:]]

    def clear(self):
        """Drop history, metrics and listeners"""
        self.listeners.clear()
        self.event_history.clear()
        self.event_counts.clear()
        self.processing_times.clear()


# Global event bus instance
event_bus = EventBus()


# Event type constants
class EventTypes:
    # Panel lifecycle events
    PANEL_OPENED = "panel.opened"
    PANEL_REVEALED = "panel.revealed"
    PANEL_DISPOSED = "panel.disposed"
    STATE_TRANSITION = "state.transition"

    # Configuration events
    CONFIG_LOADED = "config.loaded"
    CONFIG_SAVED = "config.saved"
    CONNECTION_INITIALIZED = "connection.initialized"

    # Auth events
    AUTH_SIGN_IN = "auth.sign_in"
    AUTH_SIGN_IN_FAILED = "auth.sign_in_failed"
    AUTH_SIGN_OUT = "auth.sign_out"
    AUTH_SESSION_RESTORED = "auth.session_restored"

    # Script execution events
    SCRIPT_EXECUTION_START = "script.execution_start"
    SCRIPT_EXECUTION_COMPLETE = "script.execution_complete"
    SCRIPT_EXECUTION_ERROR = "script.execution_error"

    # Protocol events
    PROTOCOL_COMMAND_RECEIVED = "protocol.command_received"
    PROTOCOL_RESPONSE_SENT = "protocol.response_sent"
    PROTOCOL_ERROR = "protocol.error"

    # Channel events
    CHANNEL_CLIENT_CONNECT = "channel.client_connect"
    CHANNEL_CLIENT_DISCONNECT = "channel.client_disconnect"
