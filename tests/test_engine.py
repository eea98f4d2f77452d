import asyncio

import pytest

from backend import NOT_INITIALIZED_MESSAGE, ScriptRequest
from events import event_bus, EventTypes
from execution import ScriptExecutionEngine, describe_exception
from conftest import CONFIG_A


@pytest.fixture
def ready_engine(engine, connection_manager):
    connection_manager.initialize(CONFIG_A)
    return engine


@pytest.mark.asyncio
async def test_without_client_reports_not_initialized(engine):
    result = await engine.execute(ScriptRequest("return 1"))

    assert result.to_dict() == {"success": False, "error": NOT_INITIALIZED_MESSAGE}
    assert engine.get_execution_stats()["total_executions"] == 0


@pytest.mark.asyncio
async def test_returns_value_and_elapsed_time(ready_engine):
    result = await ready_engine.execute(ScriptRequest("return 1+1"))

    payload = result.to_dict()
    assert payload["success"] is True
    assert payload["data"] == 2
    assert payload["executionTimeMs"] >= 0
    assert "error" not in payload


@pytest.mark.asyncio
async def test_raised_exception_becomes_failure(ready_engine):
    result = await ready_engine.execute(ScriptRequest("raise Exception('x')"))

    payload = result.to_dict()
    assert payload == {"success": False, "error": "Exception: x"}
    assert ready_engine.get_execution_stats()["failed_executions"] == 1
    assert event_bus.get_recent_events(event_type=EventTypes.SCRIPT_EXECUTION_ERROR)


@pytest.mark.asyncio
async def test_syntax_error_becomes_failure(ready_engine):
    result = await ready_engine.execute(ScriptRequest("return 1 +"))

    assert not result.success
    assert result.error.startswith("SyntaxError: ")
    assert "(line 1)" in result.error


@pytest.mark.asyncio
async def test_system_exit_is_contained(ready_engine):
    result = await ready_engine.execute(ScriptRequest("import sys\nsys.exit(3)"))

    assert result.to_dict() == {"success": False, "error": "SystemExit: 3"}


@pytest.mark.asyncio
@pytest.mark.parametrize("code, error", [
    ("raise KeyboardInterrupt", "KeyboardInterrupt"),
    ("import asyncio\nraise asyncio.CancelledError('boom')", "CancelledError: boom"),
    ("raise GeneratorExit()", "GeneratorExit"),
])
async def test_base_exceptions_are_contained(ready_engine, code, error):
    result = await ready_engine.execute(ScriptRequest(code))

    assert result.to_dict() == {"success": False, "error": error}
    assert ready_engine.get_execution_stats()["failed_executions"] == 1


@pytest.mark.asyncio
async def test_cancelling_the_running_task_propagates(ready_engine):
    started = asyncio.Event()
    code = "variables['started'].set()\nawait asyncio.sleep(10)"
    task = asyncio.ensure_future(ready_engine.execute(
        ScriptRequest("import asyncio\n" + code, {"started": started})))
    await started.wait()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_multiline_string_literals_are_kept_verbatim(ready_engine):
    code = 'x = """a\nb\n  c"""\nreturn x'
    result = await ready_engine.execute(ScriptRequest(code))

    assert result.data == "a\nb\n  c"


@pytest.mark.asyncio
async def test_errors_report_script_line_numbers(ready_engine):
    result = await ready_engine.execute(ScriptRequest("x = 1\nreturn x +"))

    assert result.error.startswith("SyntaxError: ")
    assert "(line 2)" in result.error


@pytest.mark.asyncio
async def test_yield_is_rejected(ready_engine):
    result = await ready_engine.execute(ScriptRequest("yield 1"))

    assert result.to_dict() == {
        "success": False,
        "error": "SyntaxError: 'yield' is not allowed in a script",
    }


@pytest.mark.asyncio
async def test_script_sees_client_and_variables(ready_engine):
    code = """
rows = await supabase.table("users").select("*").eq("id", variables["userId"]).execute()
return rows.data
"""
    result = await ready_engine.execute(ScriptRequest(code, {"userId": 2}))

    assert result.data == [{"id": 2, "name": "Grace"}]


@pytest.mark.asyncio
async def test_script_can_await(ready_engine):
    code = """
import asyncio
await asyncio.sleep(0)
return variables
"""
    variables = {"a": [1, 2]}
    result = await ready_engine.execute(ScriptRequest(code, variables))

    assert result.data is variables


@pytest.mark.asyncio
async def test_blank_code_returns_none(ready_engine):
    result = await ready_engine.execute(ScriptRequest("   \n"))

    assert result.success
    assert result.data is None


@pytest.mark.asyncio
async def test_indented_code_is_dedented(ready_engine):
    result = await ready_engine.execute(ScriptRequest("    x = 3\n    return x * 2\n"))

    assert result.data == 6


@pytest.mark.asyncio
async def test_each_call_compiles_fresh(ready_engine):
    first = await ready_engine.execute(ScriptRequest("counter = 1\nreturn counter"))
    second = await ready_engine.execute(ScriptRequest("return counter"))

    assert first.data == 1
    assert second.to_dict() == {"success": False, "error": "NameError: name 'counter' is not defined"}


@pytest.mark.asyncio
async def test_custom_parameter_names(connection_manager):
    connection_manager.initialize(CONFIG_A)
    engine = ScriptExecutionEngine(connection_manager, client_parameter="db", variables_parameter="params")

    result = await engine.execute(ScriptRequest("return (db.supabase_url, params['n'])", {"n": 1}))

    assert result.data == (CONFIG_A.endpoint, 1)


@pytest.mark.asyncio
async def test_stats_track_outcomes(ready_engine):
    await ready_engine.execute(ScriptRequest("return 1"))
    await ready_engine.execute(ScriptRequest("raise ValueError()"))

    stats = ready_engine.get_execution_stats()
    assert stats["total_executions"] == 2
    assert stats["successful_executions"] == 1
    assert stats["failed_executions"] == 1

    ready_engine.reset_stats()
    assert ready_engine.get_execution_stats()["total_executions"] == 0


def test_describe_exception():
    assert describe_exception(ValueError("bad value")) == "ValueError: bad value"
    assert describe_exception(KeyError("missing")) == "KeyError: 'missing'"
    assert describe_exception(RuntimeError()) == "RuntimeError"


def test_script_request_from_dict():
    assert ScriptRequest.from_dict({"code": "return 1"}).variables == {}
    assert ScriptRequest.from_dict({"code": "", "variables": None}).variables == {}

    with pytest.raises(ValueError):
        ScriptRequest.from_dict({"code": 1})
    with pytest.raises(ValueError):
        ScriptRequest.from_dict({"code": "return 1", "variables": [1, 2]})
