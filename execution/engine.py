"""
Dynamic execution of user-supplied scripts against the live backend client

The script text is the body of an ``async def`` taking two parameters, the
live client and the variables mapping. It runs with the full privileges of
this process and full access to the client: there is no sandbox, no
allow-list of operations, no timeout and no resource ceiling.
"""

import ast
import asyncio
import inspect
import logging
import textwrap
import time
from typing import Any, Callable, Dict, Optional

from backend.connection_manager import ConnectionManager, NOT_INITIALIZED_MESSAGE
from backend.models import ScriptRequest, ScriptResult
from core.logging_config import log_performance
from events import event_bus, EventTypes

logger = logging.getLogger(__name__)

SCRIPT_FUNCTION_NAME = "__function_under_test__"
SCRIPT_FILENAME = "<function>"


def describe_exception(error: BaseException) -> str:
    """One-line ``Type: message`` description of an exception"""
    if isinstance(error, SyntaxError) and error.filename == SCRIPT_FILENAME and error.lineno:
        return f"{type(error).__name__}: {error.msg} (line {error.lineno})"
    message = str(error)
    return f"{type(error).__name__}: {message}" if message else type(error).__name__


class ScriptExecutionEngine:
    """Compiles and runs script requests, reducing every outcome to a ScriptResult"""

    def __init__(self,
                 connection_manager: ConnectionManager,
                 client_parameter: str = "supabase",
                 variables_parameter: str = "variables"):
        """
        Args:
            connection_manager: Source of the live client, read on every call
            client_parameter: Name under which scripts see the client
            variables_parameter: Name under which scripts see the variables
        """
        self.connection_manager = connection_manager
        self.client_parameter = client_parameter
        self.variables_parameter = variables_parameter

        self.execution_stats = {
            "total_executions": 0,
            "successful_executions": 0,
            "failed_executions": 0,
            "last_execution_time_ms": None,
        }

    def compile_script(self, code: str) -> Callable[..., Any]:
        """
        Turn script text into a fresh coroutine function.

        The text is parsed as written and its statements are grafted into
        the body of an ``async def``, so string literals and line numbers are
        those of the script. A block that is indented as a whole and does
        not parse as written is dedented once and parsed again.

        Raises:
            SyntaxError: If the text does not compile, or makes the
                function an async generator
        """
        try:
            script = ast.parse(code, filename=SCRIPT_FILENAME)
        except IndentationError:
            dedented = textwrap.dedent(code)
            if dedented == code:
                raise
            script = ast.parse(dedented, filename=SCRIPT_FILENAME)

        wrapper = ast.parse("async def {name}({client}, {variables}):\n    pass\n".format(
            name=SCRIPT_FUNCTION_NAME,
            client=self.client_parameter,
            variables=self.variables_parameter,
        ))
        if script.body:
            wrapper.body[0].body = script.body
        ast.fix_missing_locations(wrapper)

        code_object = compile(wrapper, SCRIPT_FILENAME, "exec")
        namespace: Dict[str, Any] = {"__name__": "__function__"}
        exec(code_object, namespace)
        function = namespace[SCRIPT_FUNCTION_NAME]
        if inspect.isasyncgenfunction(function):
            raise SyntaxError("'yield' is not allowed in a script")
        return function

    async def execute(self, request: ScriptRequest) -> ScriptResult:
        """
        Run one script request. Never raises for script failures.

        Returns:
            ScriptResult carrying either data and elapsed time, or an error
        """
        client = self.connection_manager.get_client()
        if client is None:
            return ScriptResult.failure(NOT_INITIALIZED_MESSAGE)

        self.execution_stats["total_executions"] += 1
        event_bus.emit(EventTypes.SCRIPT_EXECUTION_START, {
            "code_length": len(request.code),
            "variables": [str(key) for key in request.variables],
        }, source="ScriptExecutionEngine")

        start_time: Optional[float] = None
        try:
            function = self.compile_script(request.code)
            start_time = time.perf_counter()
            data = await function(client, request.variables)
            execution_time_ms = (time.perf_counter() - start_time) * 1000.0
        except asyncio.CancelledError as e:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                # the task running this script was cancelled from outside
                raise
            return self._failed(e, start_time)
        except BaseException as e:
            # scripts may raise anything, KeyboardInterrupt and SystemExit included
            return self._failed(e, start_time)

        execution_time_ms = round(max(execution_time_ms, 0.0), 3)
        self.execution_stats["successful_executions"] += 1
        self.execution_stats["last_execution_time_ms"] = execution_time_ms

        log_performance(logger, "script_execution", execution_time_ms)
        event_bus.emit(EventTypes.SCRIPT_EXECUTION_COMPLETE, {
            "execution_time_ms": execution_time_ms,
            "result_type": type(data).__name__,
        }, source="ScriptExecutionEngine")

        return ScriptResult.ok(data, execution_time_ms)

    def _failed(self, error: BaseException, start_time: Optional[float]) -> ScriptResult:
        message = describe_exception(error)
        self.execution_stats["failed_executions"] += 1
        if start_time is not None:
            self.execution_stats["last_execution_time_ms"] = round(
                (time.perf_counter() - start_time) * 1000.0, 3)

        logger.info("Script execution failed: %s", message)
        event_bus.emit(EventTypes.SCRIPT_EXECUTION_ERROR, {
            "error": message,
            "error_type": type(error).__name__,
            "compiled": start_time is not None,
        }, source="ScriptExecutionEngine")

        return ScriptResult.failure(message)

    def get_execution_stats(self) -> Dict[str, Any]:
        return self.execution_stats.copy()

    def reset_stats(self):
        self.execution_stats = {
            "total_executions": 0,
            "successful_executions": 0,
            "failed_executions": 0,
            "last_execution_time_ms": None,
        }
