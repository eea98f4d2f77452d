"""
Centralized configuration for the function tester panel and its servers
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Panel servers: websocket message channel + HTTP page
SERVER_CONFIG = {
    "host": os.getenv("PANEL_HOST", "localhost"),
    "http_port": int(os.getenv("PANEL_HTTP_PORT", "8080")),
    "websocket_port": int(os.getenv("PANEL_WEBSOCKET_PORT", "8765")),
    "open_browser": _env_flag("PANEL_OPEN_BROWSER", "true"),
}

# Installation-scoped durable state (backend config + session)
STORAGE_CONFIG = {
    "path": os.getenv(
        "FUNCTION_TESTER_STATE_FILE",
        str(Path.home() / ".supabase-function-tester" / "global_state.json"),
    ),
}

DEFAULT_FUNCTION_CODE = """# Available parameters: supabase, variables
# Example:
# response = await supabase.table("users").select("*").eq("id", variables["userId"]).execute()
# return response.data
return {"hello": variables.get("name", "world")}
"""

# Panel presentation
PANEL_CONFIG = {
    "view_type": "supabaseTester",
    "title": "Supabase Function Tester",
    "default_code": DEFAULT_FUNCTION_CODE,
    "default_variables": '{\n  "name": "world"\n}',
}

# Calling convention of executed scripts
EXECUTION_CONFIG = {
    "client_parameter": "supabase",
    "variables_parameter": "variables",
}

# Logging configuration
LOGGING_CONFIG = {
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "log_dir": os.getenv("LOG_DIR", "./logs"),
    "enable_file_logging": os.getenv("ENABLE_FILE_LOGGING", "true").lower() == "true",
    "enable_console_logging": os.getenv("ENABLE_CONSOLE_LOGGING", "true").lower() == "true",
    "structured_logging": os.getenv("ENVIRONMENT", "development").lower() == "production",
    "max_log_size_mb": int(os.getenv("MAX_LOG_SIZE_MB", "10")),
    "backup_count": int(os.getenv("LOG_BACKUP_COUNT", "5")),
}
