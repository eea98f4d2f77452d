"""
Lifecycle state tracking for panels and their message routers
"""

import logging
import time
from enum import Enum
from typing import Dict, Any, Callable, List
from datetime import datetime

from events import event_bus, EventTypes

logger = logging.getLogger(__name__)


class PanelState(Enum):
    """Panel lifecycle states"""
    CREATED = "created"
    READY = "ready"  # HTML rendered and subscriptions wired
    DISPOSED = "disposed"


class StateTransition:
    """Represents a state transition"""
    def __init__(self, from_state: PanelState, to_state: PanelState, reason: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        self.timestamp = time.time()
        self.datetime = datetime.now()

    def __str__(self):
        return f"{self.from_state.value} → {self.to_state.value} ({self.reason})"


class StateManager:
    """Tracks a panel's lifecycle state and enforces valid transitions"""

    VALID_TRANSITIONS = {
        PanelState.CREATED: [PanelState.READY, PanelState.DISPOSED],
        PanelState.READY: [PanelState.DISPOSED],
        PanelState.DISPOSED: []  # Terminal state
    }

    def __init__(self, owner: str = "panel"):
        self.owner = owner
        self.current_state = PanelState.CREATED

        self.transitions: List[StateTransition] = []
        self.max_history = 100

        self.state_listeners: List[Callable[[PanelState, PanelState], None]] = []
        self.state_start_time = time.time()

    def get_state(self) -> PanelState:
        """Get current state"""
        return self.current_state

    def transition_to(self, new_state: PanelState, reason: str = "") -> bool:
        """
        Transition to a new state

        Args:
            new_state: Target state
            reason: Reason for transition

        Returns:
            True if transition successful, False if invalid
        """
        if new_state not in self.VALID_TRANSITIONS.get(self.current_state, []):
            logger.warning("Invalid %s state transition: %s → %s",
                           self.owner, self.current_state.value, new_state.value)
            return False

        transition = StateTransition(self.current_state, new_state, reason)
        self.transitions.append(transition)
        if len(self.transitions) > self.max_history:
            self.transitions = self.transitions[-self.max_history:]

        old_state = self.current_state
        self.current_state = new_state
        self.state_start_time = time.time()

        logger.debug("%s state transition: %s", self.owner, transition)

        event_bus.emit(EventTypes.STATE_TRANSITION, {
            "owner": self.owner,
            "from_state": old_state.value,
            "to_state": new_state.value,
            "reason": reason
        }, source="state_manager")

        self._notify_listeners(old_state, new_state)
        return True

    def add_listener(self, listener: Callable[[PanelState, PanelState], None]):
        """Add state change listener"""
        self.state_listeners.append(listener)

    def remove_listener(self, listener: Callable[[PanelState, PanelState], None]):
        """Remove state change listener"""
        if listener in self.state_listeners:
            self.state_listeners.remove(listener)

    def _notify_listeners(self, old_state: PanelState, new_state: PanelState):
        for listener in list(self.state_listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("Error in state listener")

    def is_ready(self) -> bool:
        return self.current_state == PanelState.READY

    def is_disposed(self) -> bool:
        return self.current_state == PanelState.DISPOSED

    def get_state_duration(self) -> float:
        """Get duration in current state (seconds)"""
        return time.time() - self.state_start_time

    def get_transition_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get recent state transitions"""
        recent = self.transitions[-limit:] if self.transitions else []
        return [
            {
                "from": t.from_state.value,
                "to": t.to_state.value,
                "reason": t.reason,
                "timestamp": t.timestamp,
                "datetime": t.datetime.isoformat()
            }
            for t in recent
        ]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "current_state": self.current_state.value,
            "state_duration": self.get_state_duration(),
            "transition_count": len(self.transitions),
        }
