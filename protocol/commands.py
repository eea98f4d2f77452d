"""
Command names and envelope builders of the panel message protocol
"""

from typing import Any, Dict


class Commands:
    # Inbound (UI surface -> core)
    LOAD_CONFIG = "loadConfig"
    SAVE_CONFIG = "saveConfig"
    SIGN_IN = "signIn"
    SIGN_OUT = "signOut"
    EXECUTE_FUNCTION = "executeFunction"

    # Outbound (core -> UI surface)
    CONFIG_LOADED = "configLoaded"
    CONFIG_SAVED = "configSaved"
    SIGN_IN_RESULT = "signInResult"
    SIGN_OUT_RESULT = "signOutResult"
    FUNCTION_RESULT = "functionResult"
    ERROR = "error"


RESPONSE_COMMANDS = {
    Commands.LOAD_CONFIG: Commands.CONFIG_LOADED,
    Commands.SAVE_CONFIG: Commands.CONFIG_SAVED,
    Commands.SIGN_IN: Commands.SIGN_IN_RESULT,
    Commands.SIGN_OUT: Commands.SIGN_OUT_RESULT,
    Commands.EXECUTE_FUNCTION: Commands.FUNCTION_RESULT,
}


def envelope(command: str, **payload: Any) -> Dict[str, Any]:
    """Build a flat ``{"command": ..., **payload}`` envelope"""
    message = {"command": command}
    message.update(payload)
    return message


def failure_envelope(response_command: str, error: str) -> Dict[str, Any]:
    """
    Failure-shaped variant of a response command.

    The shape mirrors the success case of the same command so the UI only
    has to look at ``success``.
    """
    if response_command == Commands.CONFIG_LOADED:
        return envelope(response_command, config=None, error=error)
    if response_command in (Commands.SIGN_IN_RESULT, Commands.FUNCTION_RESULT):
        return envelope(response_command, result={"success": False, "error": error})
    if response_command in (Commands.CONFIG_SAVED, Commands.SIGN_OUT_RESULT):
        return envelope(response_command, success=False, error=error)
    return envelope(Commands.ERROR, error=error)


def error_envelope(error: str) -> Dict[str, Any]:
    """Unsolicited dispatch-level error"""
    return envelope(Commands.ERROR, error=error)
