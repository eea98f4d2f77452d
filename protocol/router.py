"""
Dispatch of inbound protocol commands and delivery of their responses
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from backend.connection_manager import ConnectionManager
from backend.models import BackendConfig, Credentials, ScriptRequest
from core.logging_config import log_error_with_context
from core.serialization import SerializationError
from core.state_manager import PanelState, StateManager
from events import event_bus, EventTypes
from execution.engine import ScriptExecutionEngine
from storage.persistence import PersistentStore
from .commands import (
    Commands,
    RESPONSE_COMMANDS,
    envelope,
    error_envelope,
    failure_envelope,
)

logger = logging.getLogger(__name__)

PostMessage = Callable[[Dict[str, Any]], Awaitable[Any]]


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


class MessageRouter:
    """
    Turns each inbound envelope into exactly one outbound envelope.

    Holds no per-request state: every command runs against whatever the
    connection manager and the store hold when it executes. Commands are not
    serialized against each other; callers dispatch each one as its own task.
    """

    def __init__(self,
                 connection_manager: ConnectionManager,
                 engine: ScriptExecutionEngine,
                 store: PersistentStore,
                 post_message: PostMessage):
        """
        Args:
            connection_manager: Owner of the live backend client
            engine: Script execution engine bound to the same connection manager
            store: Initialized persistent store
            post_message: Coroutine delivering one envelope to the UI surface;
                a False result means it was not delivered
        """
        self.connection_manager = connection_manager
        self.engine = engine
        self.store = store
        self.post_message = post_message
        self.state = StateManager(owner="router")

        self.handlers = {
            Commands.LOAD_CONFIG: self._load_config,
            Commands.SAVE_CONFIG: self._save_config,
            Commands.SIGN_IN: self._sign_in,
            Commands.SIGN_OUT: self._sign_out,
            Commands.EXECUTE_FUNCTION: self._execute_function,
        }

        self.stats = {
            "commands_received": 0,
            "responses_sent": 0,
            "handler_failures": 0,
            "dispatch_errors": 0,
            "dropped_responses": 0,
        }

    def mark_ready(self) -> bool:
        return self.state.transition_to(PanelState.READY, "Subscriptions wired")

    def dispose(self) -> bool:
        return self.state.transition_to(PanelState.DISPOSED, "Panel disposed")

    async def start(self) -> Optional[Dict[str, Any]]:
        """Unsolicited startup sequence: behaves as if loadConfig was received"""
        return await self.dispatch(envelope(Commands.LOAD_CONFIG))

    async def dispatch(self, message: Any) -> Optional[Dict[str, Any]]:
        """
        Handle one inbound message.

        Returns:
            The envelope that was delivered, or None if nothing could be sent
        """
        if not self.state.is_ready():
            logger.debug("Ignoring message while router is %s", self.state.get_state().value)
            return None

        command = message.get("command") if isinstance(message, Mapping) else None
        if not isinstance(command, str) or command not in self.handlers:
            self.stats["dispatch_errors"] += 1
            if command is None:
                error = "Malformed message: expected an object with a 'command' field"
            else:
                error = f"Unknown command: {command}"
            logger.warning(error)
            event_bus.emit(EventTypes.PROTOCOL_ERROR, {"error": error}, source="MessageRouter")
            return await self._respond(error_envelope(error), None)

        self.stats["commands_received"] += 1
        response_command = RESPONSE_COMMANDS[command]
        event_bus.emit(EventTypes.PROTOCOL_COMMAND_RECEIVED, {
            "command": command
        }, source="MessageRouter")

        try:
            response = await self.handlers[command](message)
        except Exception as e:
            self.stats["handler_failures"] += 1
            log_error_with_context(logger, e, command)
            response = failure_envelope(response_command, _error_text(e))

        return await self._respond(response, response_command)

    async def _respond(self, response: Dict[str, Any],
                       response_command: Optional[str]) -> Optional[Dict[str, Any]]:
        if self.state.is_disposed():
            self.stats["dropped_responses"] += 1
            logger.info("Dropping %s response, panel was disposed", response.get("command"))
            return None

        try:
            delivered = await self.post_message(response)
        except SerializationError as e:
            if response_command is None:
                logger.error("Could not serialize error envelope: %s", e)
                self.stats["dropped_responses"] += 1
                return None
            logger.warning("Could not serialize %s response: %s", response_command, e)
            response = failure_envelope(response_command, f"Response could not be serialized: {e}")
            try:
                delivered = await self.post_message(response)
            except Exception:
                logger.exception("Failed to deliver %s response", response_command)
                self.stats["dropped_responses"] += 1
                return None
        except Exception:
            logger.exception("Failed to deliver %s response", response.get("command"))
            self.stats["dropped_responses"] += 1
            return None

        if delivered is False:
            logger.warning("Channel did not deliver %s response", response.get("command"))
            self.stats["dropped_responses"] += 1
            return None

        self.stats["responses_sent"] += 1
        event_bus.emit(EventTypes.PROTOCOL_RESPONSE_SENT, {
            "command": response.get("command")
        }, source="MessageRouter")
        return response

    async def _load_config(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        config = self.store.get_config()
        if config is None:
            return envelope(Commands.CONFIG_LOADED, config=None)

        self.connection_manager.initialize(config)
        session = self.store.get_session()
        if session is not None:
            await self.connection_manager.restore_session(session)

        event_bus.emit(EventTypes.CONFIG_LOADED, {
            "endpoint": config.endpoint
        }, source="MessageRouter")
        return envelope(Commands.CONFIG_LOADED, config=config.to_dict())

    async def _save_config(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        config = BackendConfig.from_dict(message.get("config"))
        await self.store.put_config(config)
        self.connection_manager.initialize(config)

        event_bus.emit(EventTypes.CONFIG_SAVED, {
            "endpoint": config.endpoint
        }, source="MessageRouter")
        return envelope(Commands.CONFIG_SAVED, success=True)

    async def _sign_in(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        credentials = Credentials.from_dict(message.get("auth"))
        result = await self.connection_manager.sign_in(credentials)
        if result.success:
            session = await self.connection_manager.get_session()
            if session is not None:
                await self.store.put_session(session)
        return envelope(Commands.SIGN_IN_RESULT, result=result.to_dict())

    async def _sign_out(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        await self.connection_manager.sign_out()
        await self.store.clear_session()
        return envelope(Commands.SIGN_OUT_RESULT, success=True)

    async def _execute_function(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        request = ScriptRequest.from_dict(message)
        result = await self.engine.execute(request)
        return envelope(Commands.FUNCTION_RESULT, result=result.to_dict())

    def get_stats(self) -> Dict[str, Any]:
        return {**self.stats, "state": self.state.get_state().value}
