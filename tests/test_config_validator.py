import pytest

from core.config_validator import ConfigValidationError, ConfigValidator, validate_startup_config


def make_validator(tmp_path, **overrides):
    settings = {
        "server_config": {"host": "localhost", "http_port": 8080, "websocket_port": 8765},
        "storage_config": {"path": str(tmp_path / "state" / "global_state.json")},
        "logging_config": {"log_level": "INFO", "max_log_size_mb": 10, "backup_count": 5},
        "execution_config": {"client_parameter": "supabase", "variables_parameter": "variables"},
    }
    for key, value in overrides.items():
        settings[key].update(value)
    return ConfigValidator(**settings)


def test_default_settings_are_valid(tmp_path):
    is_valid, errors, warnings = make_validator(tmp_path).validate_all()

    assert is_valid
    assert errors == []
    assert warnings == []


def test_port_errors(tmp_path):
    _, errors, _ = make_validator(tmp_path, server_config={"http_port": 70000}).validate_all()
    assert any("http_port 70000 is out of range" in e for e in errors)

    _, errors, _ = make_validator(tmp_path, server_config={"websocket_port": 8080}).validate_all()
    assert any("must differ" in e for e in errors)

    _, errors, _ = make_validator(tmp_path, server_config={"websocket_port": "8765"}).validate_all()
    assert any("websocket_port must be an integer" in e for e in errors)


def test_any_free_port_may_repeat(tmp_path):
    is_valid, _, _ = make_validator(
        tmp_path, server_config={"http_port": 0, "websocket_port": 0}
    ).validate_all()
    assert is_valid


def test_non_loopback_host_warns(tmp_path):
    is_valid, _, warnings = make_validator(tmp_path, server_config={"host": "0.0.0.0"}).validate_all()

    assert is_valid
    assert any("not a loopback address" in w for w in warnings)


def test_state_file_must_not_be_a_directory(tmp_path):
    _, errors, _ = make_validator(tmp_path, storage_config={"path": str(tmp_path)}).validate_all()
    assert any("is a directory" in e for e in errors)


def test_logging_checks(tmp_path):
    is_valid, errors, warnings = make_validator(
        tmp_path, logging_config={"log_level": "CHATTY", "backup_count": 100}
    ).validate_all()

    assert not is_valid
    assert any("Invalid log level 'CHATTY'" in e for e in errors)
    assert any("backup count 100" in w for w in warnings)


@pytest.mark.parametrize("parameters, message", [
    ({"client_parameter": "not valid"}, "valid Python identifier"),
    ({"client_parameter": "lambda"}, "is a Python keyword"),
    ({"variables_parameter": "supabase"}, "must differ"),
])
def test_execution_parameter_names(tmp_path, parameters, message):
    _, errors, _ = make_validator(tmp_path, execution_config=parameters).validate_all()
    assert any(message in e for e in errors)


def test_validate_startup_config_raises_on_errors(tmp_path, capsys):
    validator = make_validator(tmp_path, logging_config={"log_level": "CHATTY"})

    with pytest.raises(ConfigValidationError, match="1 configuration error"):
        validate_startup_config(validator)

    assert "Invalid log level" in capsys.readouterr().out


def test_validate_startup_config_passes(tmp_path, capsys):
    validate_startup_config(make_validator(tmp_path))
    assert "validated successfully" in capsys.readouterr().out
