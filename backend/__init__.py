"""
Backend connection management and the shared data model
"""

from .models import AuthResult, BackendConfig, Credentials, ScriptRequest, ScriptResult
from .connection_manager import ConnectionManager, NOT_INITIALIZED_MESSAGE

__all__ = [
    "AuthResult",
    "BackendConfig",
    "ConnectionManager",
    "Credentials",
    "NOT_INITIALIZED_MESSAGE",
    "ScriptRequest",
    "ScriptResult",
]
