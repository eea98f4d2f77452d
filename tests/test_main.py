import asyncio
import json

import pytest
import websockets

from main import FunctionTesterApp, parse_args, run_application
from conftest import CONFIG_A


def test_parse_args_overrides(tmp_path):
    state_file = str(tmp_path / "state.json")
    args = parse_args([
        "--host", "127.0.0.1",
        "--http-port", "9000",
        "--websocket-port", "9001",
        "--state-file", state_file,
        "--no-browser",
        "--log-level", "DEBUG",
    ])

    assert args.host == "127.0.0.1"
    assert args.http_port == 9000
    assert args.websocket_port == 9001
    assert args.state_file == state_file
    assert args.open_browser is False
    assert args.log_level == "DEBUG"


def test_invalid_configuration_exits_with_error(tmp_path, capsys):
    code = run_application([
        "--http-port", "9000",
        "--websocket-port", "9000",
        "--state-file", str(tmp_path / "state.json"),
        "--no-browser",
    ])

    assert code == 1
    assert "Configuration validation failed" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_app_serves_until_stop_requested(tmp_path, client_factory):
    state_file = tmp_path / "state.json"
    state_file.write_text(json.dumps({"supabase-config": CONFIG_A.to_dict()}), encoding="utf-8")

    app = FunctionTesterApp(
        {"host": "127.0.0.1", "http_port": 0, "websocket_port": 0, "open_browser": False},
        {"path": str(state_file)},
        client_factory=client_factory,
    )
    assert app.store.get_config() == CONFIG_A

    run_task = asyncio.ensure_future(app.run())
    for _ in range(100):
        if app.running:
            break
        await asyncio.sleep(0.01)
    assert app.running

    async with websockets.connect(app.server.websocket_url) as ws:
        loaded = json.loads(await asyncio.wait_for(ws.recv(), timeout=5))
        assert loaded == {"command": "configLoaded", "config": CONFIG_A.to_dict()}

    app.request_stop()
    await asyncio.wait_for(run_task, timeout=5)

    assert not app.running
    assert app.server.panel_host.current_panel is None
