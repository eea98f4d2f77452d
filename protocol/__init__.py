"""
Command/response message protocol between the panel UI and the core
"""

from .commands import Commands, RESPONSE_COMMANDS, envelope, error_envelope, failure_envelope
from .router import MessageRouter

__all__ = [
    "Commands",
    "MessageRouter",
    "RESPONSE_COMMANDS",
    "envelope",
    "error_envelope",
    "failure_envelope",
]
