"""Configuration helpers for the orchestrator and agents."""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Optional

import yaml

from .calculator.base import UnknownOperation

logger = logging.getLogger(__name__)

DISPATCH_MODES = ("barrier", "parallel")


class ConfigError(RuntimeError):
    """Raised when configuration files are invalid."""


def _load_mapping(path: str | pathlib.Path) -> MutableMapping:
    data = yaml.safe_load(pathlib.Path(path).read_text())
    if data is None:
        return {}
    if not isinstance(data, MutableMapping):
        raise ConfigError("Configuration root must be a mapping")
    return data


def _parse_int(value: Any, default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparsable %s=%r, using %s", name, value, default)
        return default


def _parse_optional_float(value: Any, name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _parse_optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


@dataclass
class OperationTimes:
    """Simulated per-operator latency, in milliseconds."""

    addition: int = 1000
    subtraction: int = 1000
    multiplication: int = 2000
    division: int = 2000

    ENV_NAMES = {
        "addition": "TIME_ADDITION_MS",
        "subtraction": "TIME_SUBTRACTION_MS",
        "multiplication": "TIME_MULTIPLICATIONS_MS",
        "division": "TIME_DIVISIONS_MS",
    }

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "OperationTimes":
        if not data:
            return cls()
        defaults = cls()
        return cls(
            **{
                name: _parse_int(data.get(name), getattr(defaults, name), name)
                for name in cls.ENV_NAMES
            }
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "OperationTimes":
        return cls.from_mapping(
            {name: environ.get(env_name) for name, env_name in cls.ENV_NAMES.items()}
        )

    def for_operation(self, operation: str) -> float:
        """Return the configured latency for ``operation`` in seconds."""

        by_operator = {
            "+": self.addition,
            "-": self.subtraction,
            "*": self.multiplication,
            "/": self.division,
        }
        if operation not in by_operator:
            raise UnknownOperation(operation)
        return by_operator[operation] / 1000


@dataclass
class AgentConfig:
    """Everything an agent needs; built once and passed to ``Agent``."""

    orchestrator_url: str = "http://localhost:8080"
    computing_power: int = 1
    operation_times: OperationTimes = field(default_factory=OperationTimes)
    poll_interval: float = 2.0
    max_fetch_retries: Optional[int] = None
    request_timeout: Optional[float] = None
    dispatch_mode: str = "barrier"

    def __post_init__(self) -> None:
        if self.computing_power <= 0:
            self.computing_power = 1
        if self.dispatch_mode not in DISPATCH_MODES:
            raise ConfigError(
                f"dispatch_mode must be one of {', '.join(DISPATCH_MODES)}, got '{self.dispatch_mode}'"
            )
        self.orchestrator_url = self.orchestrator_url.rstrip("/")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "AgentConfig":
        if not data:
            return cls()
        poll_interval = _parse_optional_float(data.get("poll_interval"), "poll_interval")
        return cls(
            orchestrator_url=str(data.get("orchestrator_url", cls.orchestrator_url)),
            computing_power=_parse_int(data.get("computing_power"), 1, "computing_power"),
            operation_times=OperationTimes.from_mapping(data.get("operation_times")),
            poll_interval=2.0 if poll_interval is None else poll_interval,
            max_fetch_retries=_parse_optional_int(data.get("max_fetch_retries"), "max_fetch_retries"),
            request_timeout=_parse_optional_float(data.get("request_timeout"), "request_timeout"),
            dispatch_mode=str(data.get("dispatch_mode", "barrier")),
        )

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "AgentConfig":
        data = _load_mapping(path)
        return cls.from_mapping(data.get("agent", data))

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "AgentConfig":
        return cls(
            orchestrator_url=environ.get("ORCHESTRATOR_URL") or cls.orchestrator_url,
            computing_power=_parse_int(environ.get("COMPUTING_POWER"), 1, "COMPUTING_POWER"),
            operation_times=OperationTimes.from_env(environ),
            dispatch_mode=environ.get("AGENT_DISPATCH_MODE") or "barrier",
        )


@dataclass
class OrchestratorConfig:
    """Server settings for the orchestrator."""

    host: str = "0.0.0.0"
    port: int = 8080
    operation_time_ms: int = 1000

    @property
    def operation_time(self) -> float:
        return self.operation_time_ms / 1000

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "OrchestratorConfig":
        if not data:
            return cls()
        return cls(
            host=str(data.get("host", cls.host)),
            port=_parse_int(data.get("port"), 8080, "port"),
            operation_time_ms=_parse_int(data.get("operation_time_ms"), 1000, "operation_time_ms"),
        )

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "OrchestratorConfig":
        data = _load_mapping(path)
        return cls.from_mapping(data.get("orchestrator", data))

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "OrchestratorConfig":
        return cls(
            host=environ.get("ORCHESTRATOR_HOST") or cls.host,
            port=_parse_int(environ.get("ORCHESTRATOR_PORT"), 8080, "ORCHESTRATOR_PORT"),
            operation_time_ms=_parse_int(environ.get("OPERATION_TIME_MS"), 1000, "OPERATION_TIME_MS"),
        )
