"""Agent-side worker pool and orchestrator clients."""

from .client import NoTaskAvailable, OrchestratorClient, TaskSource, TransportError
from .worker import Agent, AgentStats, AgentStopped

__all__ = [
    "Agent",
    "AgentStats",
    "AgentStopped",
    "NoTaskAvailable",
    "OrchestratorClient",
    "TaskSource",
    "TransportError",
]
