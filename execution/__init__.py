"""
Script execution against the live backend client
"""

from .engine import ScriptExecutionEngine, describe_exception

__all__ = ["ScriptExecutionEngine", "describe_exception"]
