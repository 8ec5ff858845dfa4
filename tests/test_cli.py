from typer.testing import CliRunner

from distcalc.cli import app

runner = CliRunner()


def test_calc_prints_plan_and_result():
    result = runner.invoke(app, ["calc", "(2+3)*4"])
    assert result.exit_code == 0
    assert "Result" in result.output
    assert "20" in result.output


def test_calc_reports_invalid_expression():
    result = runner.invoke(app, ["calc", "10/0"])
    assert result.exit_code == 1
    assert "division by zero" in result.output


def test_agent_reports_invalid_config_file(tmp_path):
    path = tmp_path / "agent.yaml"
    path.write_text("agent:\n  poll_interval: soon\n")
    result = runner.invoke(app, ["agent", "--config", str(path)])
    assert result.exit_code == 2
    assert "Invalid configuration" in result.output
