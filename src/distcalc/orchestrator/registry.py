"""Expression registry and shared FIFO task queue held by the orchestrator."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Deque, Dict, List, Optional, Set

from ..calculator import Task, compile_expression
from ..calculator.compiler import DEFAULT_OPERATION_TIME

logger = logging.getLogger(__name__)


class ExpressionStatus(str, Enum):
    """Expression lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExpressionStatus.DONE, ExpressionStatus.FAILED)


class ExpressionNotFound(LookupError):
    def __init__(self, expression_id: object) -> None:
        self.expression_id = expression_id
        super().__init__(f"expression {expression_id} not found")


@dataclass
class Expression:
    """Tracked evaluation state of a submitted expression."""

    id: int
    expression: str
    status: ExpressionStatus = ExpressionStatus.PENDING
    result: float = 0.0
    error: Optional[str] = None
    task_count: int = 0
    remaining: int = 0
    final_value: Optional[float] = None

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "id": str(self.id),
            "status": self.status.value,
            "result": self.result,
            "expression": self.expression,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


class ExpressionRegistry:
    """Holds expressions, the task queue and reported results under one lock.

    Every public method takes the lock for its whole duration, so each call is
    atomic with respect to every other call.
    """

    def __init__(self, operation_time: float = DEFAULT_OPERATION_TIME) -> None:
        self.operation_time = operation_time
        self._lock = threading.Lock()
        self._expressions: Dict[int, Expression] = {}
        self._tasks: Deque[Task] = deque()
        self._results: Dict[int, float] = {}
        # seqs handed out by next_task and not yet reported, per expression
        self._in_flight: Dict[int, Set[int]] = {}

    def submit(self, expression: str) -> int:
        """Compile and register ``expression``; return its id.

        Compilation errors propagate and nothing is registered.
        """

        with self._lock:
            expression_id = len(self._expressions) + 1
            compiled = compile_expression(expression_id, expression, self.operation_time)
            record = Expression(
                id=expression_id,
                expression=expression,
                task_count=len(compiled.tasks),
                remaining=len(compiled.tasks),
            )
            if not compiled.tasks:
                record.status = ExpressionStatus.DONE
                record.result = compiled.value
                self._results[expression_id] = compiled.value
            self._expressions[expression_id] = record
            self._tasks.extend(compiled.tasks)
        logger.info(
            "Registered expression %s (%r) with %d task(s)",
            expression_id,
            expression,
            len(compiled.tasks),
        )
        return expression_id

    def next_task(self) -> Optional[Task]:
        """Pop the oldest queued task, or return None when the queue is empty."""

        with self._lock:
            if not self._tasks:
                return None
            task = self._tasks.popleft()
            record = self._expressions[task.id]
            if record.status is ExpressionStatus.PENDING:
                record.status = ExpressionStatus.IN_PROGRESS
            self._in_flight.setdefault(task.id, set()).add(task.seq)
        logger.debug("Dispatched task %s#%d: %s %s %s", task.id, task.seq, task.arg1, task.operation, task.arg2)
        return task

    def report_result(self, expression_id: int, value: float, seq: Optional[int] = None) -> bool:
        """Record a task result; return True if it was applied.

        Only tasks that were dispatched and not yet reported count; duplicate
        reports, reports for queued tasks and reports for terminal expressions
        are ignored. Without ``seq`` the oldest in-flight task is assumed. The
        expression becomes ``done`` once every one of its tasks has been
        reported.
        """

        with self._lock:
            record = self._get(expression_id)
            in_flight = self._in_flight.get(expression_id, set())
            if record.status.is_terminal or not in_flight or (seq is not None and seq not in in_flight):
                logger.warning(
                    "Ignoring result %s for task %s#%s in status %s",
                    value,
                    expression_id,
                    seq,
                    record.status.value,
                )
                return False
            in_flight.discard(min(in_flight) if seq is None else seq)
            self._results[expression_id] = value
            if seq is None or seq == record.task_count - 1:
                record.final_value = value
            record.remaining -= 1
            if record.remaining == 0:
                record.status = ExpressionStatus.DONE
                record.result = record.final_value if record.final_value is not None else value
                logger.info("Expression %s done, result %s", expression_id, record.result)
        return True

    def report_failure(self, expression_id: int, message: str) -> bool:
        """Mark an expression ``failed`` and drop its queued tasks."""

        with self._lock:
            record = self._get(expression_id)
            if record.status.is_terminal:
                logger.warning(
                    "Ignoring failure for expression %s in status %s",
                    expression_id,
                    record.status.value,
                )
                return False
            record.status = ExpressionStatus.FAILED
            record.error = message
            record.remaining = 0
            self._in_flight.pop(expression_id, None)
            self._tasks = deque(task for task in self._tasks if task.id != expression_id)
        logger.warning("Expression %s failed: %s", expression_id, message)
        return True

    def get_expression(self, expression_id: int) -> Expression:
        with self._lock:
            return replace(self._get(expression_id))

    def get_all(self) -> List[Expression]:
        with self._lock:
            return [replace(record) for record in self._expressions.values()]

    def latest_result(self, expression_id: int) -> Optional[float]:
        with self._lock:
            return self._results.get(expression_id)

    def pending_tasks(self) -> int:
        with self._lock:
            return len(self._tasks)

    def _get(self, expression_id: int) -> Expression:
        try:
            return self._expressions[expression_id]
        except KeyError as exc:
            raise ExpressionNotFound(expression_id) from exc
