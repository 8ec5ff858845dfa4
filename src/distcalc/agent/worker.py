"""Agent worker pool that pulls tasks, simulates their cost and reports results."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from ..calculator import CalculatorError, Task, apply_operation
from ..config import AgentConfig
from .client import NoTaskAvailable, OrchestratorClient, TaskSource, TransportError

logger = logging.getLogger(__name__)


class AgentStopped(Exception):
    """Raised inside a worker when the agent is stopped mid-task."""


@dataclass
class AgentStats:
    """Counters updated by the dispatcher and workers."""

    fetched: int = 0
    succeeded: int = 0
    failed: int = 0
    fetch_errors: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + 1)


class Agent:
    """Runs ``computing_power`` workers against an orchestrator.

    In ``barrier`` mode a single dispatcher fetches tasks and hands them to the
    pool through a bounded queue, waiting for each one to finish before fetching
    the next, so at most one task is in flight for the whole agent. This keeps
    an expression's tasks executing in the order they were compiled. In
    ``parallel`` mode every worker polls on its own and tasks from the queue run
    concurrently.
    """

    def __init__(self, config: AgentConfig, client: TaskSource | None = None) -> None:
        self.config = config
        self.client = client or OrchestratorClient(
            config.orchestrator_url, timeout=config.request_timeout
        )
        self.stats = AgentStats()
        self._stop = threading.Event()
        self._queue: "queue.Queue[Task]" = queue.Queue(maxsize=config.computing_power)
        self._finished = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def execute_task(self, task: Task) -> float:
        """Sleep for the operator's configured latency, then compute the result."""

        delay = self.config.operation_times.for_operation(task.operation)
        logger.info("Executing task %s#%d: %s %s %s", task.id, task.seq, task.arg1, task.operation, task.arg2)
        if self._stop.wait(delay):
            raise AgentStopped()
        result = apply_operation(task.operation, task.arg1, task.arg2)
        logger.info("Task %s#%d done, result %s", task.id, task.seq, result)
        return result

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Agent is already running")
        self._stop.clear()
        workers = self.config.computing_power
        if self.config.dispatch_mode == "parallel":
            self._spawn(self._polling_worker, workers, "agent-worker")
        else:
            self._spawn(self._pool_worker, workers, "agent-worker")
            self._spawn(self._dispatcher, 1, "agent-dispatcher")
        logger.info(
            "Agent started with %d worker(s) in %s mode against %s",
            workers,
            self.config.dispatch_mode,
            self.config.orchestrator_url,
        )

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [thread for thread in self._threads if thread.is_alive()]

    def _spawn(self, target, count: int, name: str) -> None:
        for index in range(count):
            thread = threading.Thread(target=target, name=f"{name}-{index}", daemon=True)
            self._threads.append(thread)
            thread.start()

    def _fetch(self, failures: int) -> tuple[Optional[Task], int]:
        """Fetch one task; on failure back off and return the new failure count."""

        try:
            task = self.client.fetch_task()
        except NoTaskAvailable:
            logger.debug("No tasks available, retrying in %ss", self.config.poll_interval)
        except TransportError as exc:
            self.stats.increment("fetch_errors")
            logger.warning("Failed to fetch task: %s", exc)
        else:
            self.stats.increment("fetched")
            return task, 0
        self._stop.wait(self.config.poll_interval)
        return None, failures + 1

    def _retries_exhausted(self, failures: int) -> bool:
        limit = self.config.max_fetch_retries
        if limit is not None and failures > limit:
            logger.warning("Giving up after %d consecutive unsuccessful polls", failures)
            return True
        return False

    def _dispatcher(self) -> None:
        failures = 0
        while not self._stop.is_set():
            task, failures = self._fetch(failures)
            if task is None:
                if self._retries_exhausted(failures):
                    self._stop.set()
                continue
            self._finished.clear()
            while not self._stop.is_set():
                try:
                    self._queue.put(task, timeout=0.1)
                    break
                except queue.Full:
                    continue
            # one task in flight for the whole pool
            while not self._finished.wait(0.1):
                if self._stop.is_set():
                    return

    def _pool_worker(self) -> None:
        while not self._stop.is_set():
            try:
                task = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._process(task)
            except AgentStopped:
                logger.info("Abandoned task %s#%d on shutdown", task.id, task.seq)
            finally:
                self._finished.set()

    def _polling_worker(self) -> None:
        failures = 0
        while not self._stop.is_set():
            task, failures = self._fetch(failures)
            if task is None:
                if self._retries_exhausted(failures):
                    return
                continue
            try:
                self._process(task)
            except AgentStopped:
                logger.info("Abandoned task %s#%d on shutdown", task.id, task.seq)
                return

    def _process(self, task: Task) -> None:
        try:
            result = self.execute_task(task)
        except CalculatorError as exc:
            self.stats.increment("failed")
            logger.error("Task %s#%d failed: %s", task.id, task.seq, exc)
            try:
                self.client.submit_failure(task.id, str(exc))
            except TransportError as report_exc:
                logger.error("Failed to report failure of task %s#%d: %s", task.id, task.seq, report_exc)
            return

        try:
            self.client.submit_result(task.id, result, task.seq)
        except TransportError as exc:
            logger.error("Failed to submit result of task %s#%d: %s", task.id, task.seq, exc)
            return
        self.stats.increment("succeeded")
        logger.info("Submitted result of task %s#%d: %s", task.id, task.seq, result)
