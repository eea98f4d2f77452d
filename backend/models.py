"""
Data model shared by the connection manager, the execution engine and the protocol
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


def _require_text(data: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"'{key}' must be a string")
        if not value.strip():
            raise ValueError(f"'{key}' must not be empty")
        return value
    raise ValueError(f"Missing required field '{keys[0]}'")


@dataclass(frozen=True)
class BackendConfig:
    """Identifies one backend target. Replaced wholesale, never mutated."""
    endpoint: str
    credential_key: str

    @classmethod
    def from_dict(cls, data: Any) -> "BackendConfig":
        if not isinstance(data, Mapping):
            raise ValueError("Backend configuration must be an object")
        return cls(
            endpoint=_require_text(data, "endpoint").strip(),
            credential_key=_require_text(data, "credentialKey").strip(),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"endpoint": self.endpoint, "credentialKey": self.credential_key}


@dataclass(frozen=True)
class Credentials:
    """Sign-in arguments. Never persisted."""
    principal: str
    secret: str = field(repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> "Credentials":
        if not isinstance(data, Mapping):
            raise ValueError("Credentials must be an object")
        return cls(
            principal=_require_text(data, "principal", "email").strip(),
            secret=_require_text(data, "secret", "password"),
        )


@dataclass(frozen=True)
class AuthResult:
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "AuthResult":
        return cls(success=True)

    @classmethod
    def failure(cls, error: str) -> "AuthResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True}
        return {"success": False, "error": self.error}


@dataclass
class ScriptRequest:
    code: str
    variables: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "ScriptRequest":
        if not isinstance(data, Mapping):
            raise ValueError("Script request must be an object")
        code = data.get("code")
        if not isinstance(code, str):
            raise ValueError("'code' must be a string")
        variables = data.get("variables")
        if variables is None:
            variables = {}
        elif not isinstance(variables, dict):
            raise ValueError("'variables' must be an object")
        return cls(code=code, variables=variables)


class ScriptResult:
    """
    Outcome of one script execution.

    A tagged variant: successful results carry ``data`` and
    ``execution_time_ms``, failed results carry ``error`` only.
    """

    __slots__ = ("success", "data", "execution_time_ms", "error")

    def __init__(self, success: bool, data: Any = None,
                 execution_time_ms: Optional[float] = None, error: Optional[str] = None):
        self.success = success
        self.data = data
        self.execution_time_ms = execution_time_ms
        self.error = error

    @classmethod
    def ok(cls, data: Any, execution_time_ms: float) -> "ScriptResult":
        return cls(True, data=data, execution_time_ms=execution_time_ms)

    @classmethod
    def failure(cls, error: str) -> "ScriptResult":
        return cls(False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "data": self.data,
                "executionTimeMs": self.execution_time_ms,
            }
        return {"success": False, "error": self.error}

    def __repr__(self):
        if self.success:
            return f"ScriptResult.ok(data={self.data!r}, execution_time_ms={self.execution_time_ms!r})"
        return f"ScriptResult.failure({self.error!r})"
