"""Clients an agent uses to talk to the orchestrator."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional, Protocol

from ..calculator import Task

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Connection failure, non-success status or undecodable response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NoTaskAvailable(TransportError):
    """The orchestrator has no queued task right now."""


class TaskSource(Protocol):
    """Interface the agent's dispatcher and workers depend on."""

    def fetch_task(self) -> Task:  # pragma: no cover - interface
        """Return the next task or raise ``TransportError``."""

    def submit_result(self, expression_id: int, value: float, seq: int | None = None) -> None:  # pragma: no cover - interface
        """Report a computed value."""

    def submit_failure(self, expression_id: int, message: str) -> None:  # pragma: no cover - interface
        """Report that a task could not be computed."""


class OrchestratorClient:
    """Talks to an orchestrator over its JSON HTTP API."""

    def __init__(self, base_url: str, *, timeout: float | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch_task(self) -> Task:
        try:
            data = self._request("GET", "/internal/task")
        except TransportError as exc:
            if exc.status == 404:
                raise NoTaskAvailable("no tasks available", status=404) from exc
            raise
        try:
            task = Task.from_payload(data)
        except (TypeError, ValueError) as exc:
            raise TransportError(f"failed to decode task: {exc}") from exc
        logger.debug("Received task %s#%d", task.id, task.seq)
        return task

    def submit_result(self, expression_id: int, value: float, seq: int | None = None) -> None:
        payload: Dict[str, Any] = {"id": str(expression_id), "result": value}
        if seq is not None:
            payload["seq"] = seq
        self._request("POST", "/internal/task", payload)

    def submit_failure(self, expression_id: int, message: str) -> None:
        self._request("POST", "/internal/task", {"id": str(expression_id), "error": message})

    def calculate(self, expression: str) -> int:
        data = self._request("POST", "/api/v1/calculate", {"expression": expression})
        return int(data["id"])

    def get_expression(self, expression_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/v1/expressions/{expression_id}")

    def list_expressions(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/v1/expressions")

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        request = urllib.request.Request(
            url=f"{self.base_url}{path}",
            data=json.dumps(payload).encode("utf-8") if payload is not None else None,
            headers={"Content-Type": "application/json"},
            method=method,
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise TransportError(
                f"{method} {path} failed with status {exc.code}: {detail}", status=exc.code
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise TransportError(f"failed to reach {self.base_url}: {exc}") from exc
        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise TransportError(f"{method} {path} returned invalid JSON: {exc}") from exc
