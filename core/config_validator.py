"""
Configuration validation module.

This module validates configuration settings on startup to catch
issues early and provide clear error messages for misconfigurations.
"""

import keyword
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


class ConfigValidator:
    """Validates the function tester configuration"""

    def __init__(self,
                 server_config: Optional[Dict[str, Any]] = None,
                 storage_config: Optional[Dict[str, Any]] = None,
                 logging_config: Optional[Dict[str, Any]] = None,
                 execution_config: Optional[Dict[str, Any]] = None):
        """
        Args default to the settings dictionaries in ``config``.
        """
        import config

        self.server_config = server_config if server_config is not None else config.SERVER_CONFIG
        self.storage_config = storage_config if storage_config is not None else config.STORAGE_CONFIG
        self.logging_config = logging_config if logging_config is not None else config.LOGGING_CONFIG
        self.execution_config = execution_config if execution_config is not None else config.EXECUTION_CONFIG

        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """
        Validate all configuration settings.

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors.clear()
        self.warnings.clear()

        self._validate_network_config()
        self._validate_storage_config()
        self._validate_logging_config()
        self._validate_execution_config()

        is_valid = len(self.errors) == 0
        return is_valid, self.errors.copy(), self.warnings.copy()

    def _validate_network_config(self):
        """Validate server host and ports"""
        host = self.server_config.get("host", "localhost")
        if not isinstance(host, str) or not host.strip():
            self.errors.append("Server host must be a non-empty string")
        elif host not in ("localhost", "127.0.0.1", "::1"):
            self.warnings.append(
                f"Server host '{host}' is not a loopback address. "
                "Anyone who can reach it can run code in this process"
            )

        ports = {}
        for name in ("http_port", "websocket_port"):
            port = self.server_config.get(name)
            if not isinstance(port, int) or isinstance(port, bool):
                self.errors.append(f"{name} must be an integer, got {port!r}")
                continue
            if port < 0 or port > 65535:
                self.errors.append(f"{name} {port} is out of range. Must be 0-65535")
                continue
            if 0 < port < 1024:
                self.warnings.append(f"{name} {port} is a privileged port and may require elevated permissions")
            ports[name] = port

        if len(ports) == 2 and ports["http_port"] == ports["websocket_port"] and ports["http_port"] != 0:
            self.errors.append(f"http_port and websocket_port must differ, both are {ports['http_port']}")

    def _validate_storage_config(self):
        """Validate the state file location"""
        state_file = self.storage_config.get("path")
        if not state_file:
            self.errors.append("State file path is not set")
            return

        state_path = Path(state_file).expanduser()
        if state_path.is_dir():
            self.errors.append(f"State file path '{state_path}' is a directory")
            return

        # The store creates missing directories, so check the nearest existing ancestor
        ancestor = state_path.parent
        while not ancestor.exists() and ancestor != ancestor.parent:
            ancestor = ancestor.parent
        if not os.access(ancestor, os.W_OK):
            self.errors.append(f"State file directory '{ancestor}' is not writable")

    def _validate_logging_config(self):
        """Validate logging configuration"""
        log_level = self.logging_config.get("log_level", "INFO")
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if str(log_level).upper() not in valid_levels:
            self.errors.append(f"Invalid log level '{log_level}'. Must be one of: {', '.join(valid_levels)}")

        max_size = self.logging_config.get("max_log_size_mb", 10)
        if max_size < 1 or max_size > 1000:
            self.warnings.append(f"Log file size {max_size}MB may be {'too small' if max_size < 5 else 'too large'}. Recommended: 5-100MB")

        backup_count = self.logging_config.get("backup_count", 5)
        if backup_count < 1 or backup_count > 50:
            self.warnings.append(f"Log backup count {backup_count} may be {'too low' if backup_count < 3 else 'too high'}. Recommended: 3-20")

    def _validate_execution_config(self):
        """Validate the parameter names scripts are compiled with"""
        names = []
        for key in ("client_parameter", "variables_parameter"):
            name = self.execution_config.get(key)
            if not isinstance(name, str) or not name.isidentifier():
                self.errors.append(f"{key} must be a valid Python identifier, got {name!r}")
            elif keyword.iskeyword(name):
                self.errors.append(f"{key} '{name}' is a Python keyword")
            else:
                names.append(name)

        if len(names) == 2 and names[0] == names[1]:
            self.errors.append(f"client_parameter and variables_parameter must differ, both are '{names[0]}'")


def validate_startup_config(validator: Optional[ConfigValidator] = None) -> None:
    """
    Validate configuration on startup.

    Raises:
        ConfigValidationError: If critical configuration errors are found
    """
    validator = validator or ConfigValidator()
    is_valid, errors, warnings = validator.validate_all()

    # Always show warnings
    if warnings:
        print("⚠️  Configuration Warnings:")
        for warning in warnings:
            print(f"  • {warning}")
        print()

    if errors:
        print("❌ Configuration Errors:")
        for error in errors:
            print(f"  • {error}")
        print()

        error_msg = f"Found {len(errors)} configuration error(s) that must be fixed before starting the application."
        if warnings:
            error_msg += f" Also found {len(warnings)} warning(s) that should be addressed."

        raise ConfigValidationError(error_msg)

    if warnings:
        print(f"✅ Configuration validated successfully with {len(warnings)} warning(s)")
    else:
        print("✅ Configuration validated successfully")
    print()
