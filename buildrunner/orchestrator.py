# buildrunner/orchestrator.py

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from pydantic import ValidationError

import config
from buildrunner.errors import (
    ConfigError,
    CycleError,
    InterruptedExecutionError,
    ShutdownTimeoutError,
    TaskExecutionError,
)
from buildrunner.executors import Executor, coerce_executor
from buildrunner.graph import DependencyGraph, describe_levels, find_cycle
from buildrunner.models import BuildResult, Completion, ReadyItem
from buildrunner.queues import CompletionQueue, ReadyQueue
from buildrunner.workers import WorkerPool
from schemas import BuildRequest


@dataclass
class OrchestratorPolicy:
    drain_timeout_s: float = field(default_factory=lambda: config.DRAIN_TIMEOUT_S)
    completion_poll_s: float = field(default_factory=lambda: config.COMPLETION_POLL_S)
    trace: bool = field(default_factory=lambda: config.TRACE)


class State(Enum):
    SCANNING = "scanning"
    DISPATCHING = "dispatching"
    AWAITING_COMPLETION = "awaiting_completion"
    RESOLVING = "resolving"
    DRAINING = "draining"
    DONE = "done"


class BuildRun:
    """
    One build, driven as an explicit state machine:

        SCANNING -> DISPATCHING -> AWAITING_COMPLETION -> RESOLVING -> SCANNING ...
        SCANNING -> DRAINING -> DONE

    step() performs exactly one transition. The graph and the result are
    only ever touched from the thread calling step(); workers only see the
    two queues.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        worker_count: int,
        executor: Executor,
        policy: Optional[OrchestratorPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.graph = graph
        self.policy = policy or OrchestratorPolicy()
        self.ready = ReadyQueue()
        self.completed = CompletionQueue()
        self.pool = WorkerPool(
            worker_count, self.ready, self.completed, executor, trace=self.policy.trace
        )
        self.result = BuildResult()
        self.state = State.SCANNING
        self.in_flight: Set[str] = set()

        self._cancel = cancel_event or threading.Event()
        self._batch: List[ReadyItem] = []
        self._completion: Optional[Completion] = None
        self._started_at: Optional[float] = None

        self._handlers: Dict[State, Callable[[], State]] = {
            State.SCANNING: self._scan,
            State.DISPATCHING: self._dispatch,
            State.AWAITING_COMPLETION: self._await_completion,
            State.RESOLVING: self._resolve,
            State.DRAINING: self._drain,
        }

    def run(self) -> BuildResult:
        self._started_at = time.monotonic()
        self.pool.start()
        try:
            while self.state is not State.DONE:
                self.step()
        except BaseException as e:
            if self.state is not State.DRAINING:
                self._abort(e)
            raise
        return self.result

    def step(self) -> State:
        handler = self._handlers.get(self.state)
        if handler is None:
            raise RuntimeError(f"Build already finished (state={self.state.value})")
        self.state = handler()
        return self.state

    # ---------------------------------------------------------------------
    # States
    # ---------------------------------------------------------------------

    def _scan(self) -> State:
        ready = self.graph.ready_tasks()
        if ready:
            self._batch = [ReadyItem.from_task(t) for t in ready]
            return State.DISPATCHING

        if self.in_flight:
            return State.AWAITING_COMPLETION

        if self.graph.is_empty():
            return State.DRAINING

        # Nothing ready, nothing running, tasks left: only a cycle does this.
        remaining = self.graph.remaining()
        raise CycleError(find_cycle(remaining) or sorted(remaining))

    def _dispatch(self) -> State:
        batch, self._batch = self._batch, []
        self.result.add_batch(batch)

        if self.policy.trace:
            print(f"[ORCH] batch: {[str(i) for i in batch]}")

        for item in batch:
            if self.policy.trace:
                print(f"[ORCH] dispatch: {item}")
            self.ready.put(item)
            self.graph.remove(item.task_id)
            self.in_flight.add(item.task_id)
        return State.AWAITING_COMPLETION

    def _await_completion(self) -> State:
        if not self.in_flight:
            raise RuntimeError("Awaiting a completion with nothing in flight (deadlock)")

        while True:
            if self._cancel.is_set():
                raise InterruptedExecutionError(
                    f"Build cancelled with tasks in flight: {sorted(self.in_flight)}"
                )
            try:
                self._completion = self.completed.take(timeout=self.policy.completion_poll_s)
            except queue.Empty:
                continue
            except KeyboardInterrupt as e:
                raise InterruptedExecutionError("Interrupted while awaiting a completion") from e
            return State.RESOLVING

    def _resolve(self) -> State:
        completion, self._completion = self._completion, None
        if completion is None:
            raise RuntimeError("Resolving without a completion")

        self.in_flight.discard(completion.task_id)
        if completion.error is not None:
            raise TaskExecutionError(
                task_id=completion.task_id,
                reason=repr(completion.error),
                cause=completion.error,
            ) from completion.error

        if self.policy.trace:
            print(f"[ORCH] done: {completion.task_id}")

        self.result.add_completion(completion.task_id)
        self.graph.resolve(completion.task_id)

        if self.policy.trace:
            print(f"[ORCH] resolve: {completion.task_id} remaining={len(self.graph)}")
        return State.SCANNING

    def _drain(self) -> State:
        if self.policy.trace:
            print(f"[ORCH] drain: stopping {self.pool.size} worker(s)")

        self.pool.stop(self.policy.drain_timeout_s)
        if self._started_at is not None:
            self.result.elapsed_s = time.monotonic() - self._started_at
        return State.DONE

    def _abort(self, error: BaseException) -> None:
        dropped = self.ready.clear()
        if self.policy.trace:
            print(f"[ORCH] abort: {error!r} dropped={[str(i) for i in dropped]}")
        try:
            self.pool.stop(self.policy.drain_timeout_s)
        except ShutdownTimeoutError as stop_error:
            # The original error is what the caller needs to see.
            error.add_note(f"while aborting: {stop_error}")


class Orchestrator:
    """
    Runs builds of interdependent tasks on a fixed pool of workers.

    - ready tasks are dispatched in batches, shortest first (ties by id)
    - a task becomes ready once every prerequisite has completed
    - inputs are validated (types, unknown ids, cycles) before any dispatch
    """

    def __init__(self, executor: Any = None, policy: Optional[OrchestratorPolicy] = None) -> None:
        self.executor = coerce_executor(executor)
        self.policy = policy or OrchestratorPolicy()
        self._cancel: Optional[threading.Event] = None

    def build(
        self,
        durations: Mapping[str, int],
        dependencies: Optional[Mapping[str, Iterable[str]]] = None,
        worker_count: Optional[int] = None,
    ) -> BuildResult:
        # Fresh event per build, published before validation so a cancel()
        # issued at any point after build() is entered is honoured.
        cancel_event = threading.Event()
        self._cancel = cancel_event

        request = _validate_request(durations, dependencies, worker_count)
        graph = DependencyGraph(request.to_tasks())
        graph.validate()

        if self.policy.trace:
            print(f"[ORCH] build: tasks={len(graph)} workers={request.worker_count}")

        run = BuildRun(
            graph,
            request.worker_count,
            self.executor,
            self.policy,
            cancel_event=cancel_event,
        )
        return run.run()

    def cancel(self) -> None:
        """
        Ask the current (or most recent) build to stop. In-flight tasks
        finish; nothing new starts. A later build() is not affected.
        """
        if self._cancel is not None:
            self._cancel.set()

    def describe(
        self,
        durations: Mapping[str, int],
        dependencies: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> str:
        """
        Human-friendly view of the task graph (no execution).
        """
        request = _validate_request(durations, dependencies, None)
        tasks = request.to_tasks()
        levels = describe_levels(tasks)

        lines: List[str] = []
        lines.append("Build plan:")
        lines.append(f"- Tasks: {len(tasks)}")
        for t in tasks:
            lines.append(f"  - {t.id}:{t.duration} deps={sorted(t.dependencies)}")
        lines.append(f"- Dependency levels: {len(levels)}")
        for i, level in enumerate(levels, 1):
            lines.append(f"  {i}) {[f'{t.id}:{t.duration}' for t in level]}")
        return "\n".join(lines)


def build(
    durations: Mapping[str, int],
    dependencies: Optional[Mapping[str, Iterable[str]]] = None,
    worker_count: Optional[int] = None,
    *,
    executor: Any = None,
    policy: Optional[OrchestratorPolicy] = None,
) -> BuildResult:
    return Orchestrator(executor=executor, policy=policy).build(
        durations, dependencies, worker_count
    )


def _validate_request(
    durations: Any,
    dependencies: Any,
    worker_count: Optional[int],
) -> BuildRequest:
    payload: Dict[str, Any] = {
        "durations": durations,
        "dependencies": dependencies if dependencies is not None else {},
    }
    payload["worker_count"] = config.DEFAULT_WORKER_COUNT if worker_count is None else worker_count

    try:
        return BuildRequest.model_validate(payload)
    except ValidationError as e:
        raise ConfigError(f"Invalid build input: {e}") from e

