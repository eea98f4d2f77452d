"""
Core system components: logging, configuration validation, lifecycle state
"""

from .state_manager import StateManager, PanelState

__all__ = ["StateManager", "PanelState"]
