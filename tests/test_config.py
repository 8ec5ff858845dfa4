import pytest

from distcalc.calculator import UnknownOperation
from distcalc.config import AgentConfig, ConfigError, OperationTimes, OrchestratorConfig


def test_operation_time_defaults():
    times = OperationTimes()
    assert (times.addition, times.subtraction, times.multiplication, times.division) == (
        1000,
        1000,
        2000,
        2000,
    )
    assert times.for_operation("*") == 2.0
    with pytest.raises(UnknownOperation):
        times.for_operation("%")


def test_agent_config_from_env_falls_back_on_unparsable_values():
    config = AgentConfig.from_env(
        {
            "ORCHESTRATOR_URL": "http://orchestrator:8080/",
            "COMPUTING_POWER": "4",
            "TIME_ADDITION_MS": "150",
            "TIME_SUBTRACTION_MS": "soon",
            "TIME_DIVISIONS_MS": "",
        }
    )
    assert config.orchestrator_url == "http://orchestrator:8080"
    assert config.computing_power == 4
    assert config.operation_times.addition == 150
    assert config.operation_times.subtraction == 1000
    assert config.operation_times.multiplication == 2000
    assert config.operation_times.division == 2000
    assert config.dispatch_mode == "barrier"
    assert config.max_fetch_retries is None


def test_agent_config_coerces_non_positive_worker_count():
    assert AgentConfig(computing_power=0).computing_power == 1
    assert AgentConfig.from_env({"COMPUTING_POWER": "-3"}).computing_power == 1


def test_agent_config_rejects_unknown_dispatch_mode():
    with pytest.raises(ConfigError):
        AgentConfig(dispatch_mode="turbo")


def test_agent_config_from_yaml(tmp_path):
    path = tmp_path / "distcalc.yaml"
    path.write_text(
        """
agent:
  orchestrator_url: http://example:9000
  computing_power: 2
  dispatch_mode: parallel
  max_fetch_retries: 5
  request_timeout: 2.5
  operation_times:
    addition: 10
    division: 40
"""
    )
    config = AgentConfig.from_file(path)
    assert config.orchestrator_url == "http://example:9000"
    assert config.computing_power == 2
    assert config.dispatch_mode == "parallel"
    assert config.max_fetch_retries == 5
    assert config.request_timeout == 2.5
    assert config.operation_times.addition == 10
    assert config.operation_times.division == 40
    assert config.operation_times.multiplication == 2000


def test_config_file_root_must_be_mapping(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        AgentConfig.from_file(path)
    with pytest.raises(ConfigError):
        OrchestratorConfig.from_file(path)


def test_orchestrator_config_sources(tmp_path):
    path = tmp_path / "orchestrator.yaml"
    path.write_text("orchestrator:\n  port: 9090\n  operation_time_ms: 500\n")
    config = OrchestratorConfig.from_file(path)
    assert (config.host, config.port, config.operation_time) == ("0.0.0.0", 9090, 0.5)

    from_env = OrchestratorConfig.from_env({"ORCHESTRATOR_PORT": "nope", "OPERATION_TIME_MS": "20"})
    assert from_env.port == 8080
    assert from_env.operation_time_ms == 20


@pytest.mark.parametrize(
    "body, field",
    [
        ("agent:\n  poll_interval: soon\n", "poll_interval"),
        ("agent:\n  max_fetch_retries: many\n", "max_fetch_retries"),
    ],
)
def test_agent_config_rejects_non_numeric_values(tmp_path, body, field):
    path = tmp_path / "agent.yaml"
    path.write_text(body)
    with pytest.raises(ConfigError, match=field):
        AgentConfig.from_file(path)
