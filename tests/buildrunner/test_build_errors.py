from __future__ import annotations

import threading

import pytest

from buildrunner import build
from buildrunner.errors import (
    ConfigError,
    CycleError,
    InterruptedExecutionError,
    TaskExecutionError,
)
from buildrunner import orchestrator as orchestrator_module
from buildrunner.models import ReadyItem
from buildrunner.orchestrator import Orchestrator, OrchestratorPolicy


class RecordingExecutor:
    def __init__(self) -> None:
        self.seen: list[str] = []
        self._lock = threading.Lock()

    def execute(self, item: ReadyItem) -> None:
        with self._lock:
            self.seen.append(item.task_id)


class FailOn:
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        self.seen: list[str] = []

    def execute(self, item: ReadyItem) -> None:
        self.seen.append(item.task_id)
        if item.task_id == self.task_id:
            raise RuntimeError(f"{item.task_id} broke")


def test_reports_cycles():
    durations = {"A": 5, "B": 10, "C": 15}
    dependencies = {"A": ["B"], "B": ["A"], "C": []}

    with pytest.raises(CycleError) as exc:
        build(durations, dependencies, 5)

    assert str(exc.value) == "The task-dependencies mapping contains a cycle between nodes: [A, B]"


def test_cycle_is_detected_before_any_dispatch():
    executor = RecordingExecutor()
    orch = Orchestrator(executor=executor)

    with pytest.raises(CycleError):
        orch.build({"A": 1, "B": 1, "free": 1}, {"A": ["B"], "B": ["A"]}, 2)

    assert executor.seen == []


def test_cycle_error_is_a_config_error():
    with pytest.raises(ConfigError):
        build({"A": 1}, {"A": ["A"]}, 1)


def test_unknown_dependency_raises_config_error():
    executor = RecordingExecutor()

    with pytest.raises(ConfigError, match="does.not.exist"):
        Orchestrator(executor=executor).build({"w1": 1}, {"w1": ["does.not.exist"]}, 2)

    assert executor.seen == []


def test_dependencies_for_unknown_task_raise_config_error():
    with pytest.raises(ConfigError, match="ghost"):
        build({"A": 1}, {"ghost": ["A"]}, 1)


@pytest.mark.parametrize("workers", [0, -3])
def test_non_positive_worker_count_raises_config_error(workers):
    with pytest.raises(ConfigError):
        build({"A": 1}, {}, workers)


def test_negative_duration_raises_config_error():
    with pytest.raises(ConfigError):
        build({"A": -1}, {}, 1)


def test_string_duration_is_not_coerced():
    with pytest.raises(ConfigError):
        build({"A": "5"}, {}, 1)


def test_bool_duration_is_not_coerced():
    with pytest.raises(ConfigError):
        build({"B": True}, {}, 1)


def test_bool_worker_count_is_not_coerced():
    with pytest.raises(ConfigError):
        build({"A": 5}, {}, True)


def test_non_string_dependency_list_raises_config_error():
    with pytest.raises(ConfigError):
        build({"A": 1, "B": 1}, {"A": "B"}, 1)


def test_failed_task_aborts_build_and_skips_dependents():
    executor = FailOn("B")

    with pytest.raises(TaskExecutionError) as exc:
        Orchestrator(executor=executor).build({"A": 1, "B": 1}, {"A": ["B"]}, 1)

    assert exc.value.task_id == "B"
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert "A" not in executor.seen


class ExitingExecutor:
    def execute(self, item: ReadyItem) -> None:
        raise SystemExit(f"{item.task_id} exited")


def test_executor_raising_system_exit_fails_build_instead_of_hanging():
    outcome: dict = {}

    def _run() -> None:
        try:
            Orchestrator(executor=ExitingExecutor()).build({"A": 1}, {}, 1)
        except TaskExecutionError as e:
            outcome["error"] = e

    t = threading.Thread(target=_run, daemon=True)
    t.start()
    t.join(5.0)

    assert not t.is_alive(), "build() blocked after its only worker exited"
    assert outcome["error"].task_id == "A"
    assert isinstance(outcome["error"].__cause__, SystemExit)


class CancelAfter:
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        self.orchestrator: Orchestrator | None = None
        self.seen: list[str] = []

    def execute(self, item: ReadyItem) -> None:
        self.seen.append(item.task_id)
        if item.task_id == self.task_id:
            self.orchestrator.cancel()


def test_cancel_interrupts_build():
    executor = CancelAfter("first")
    orch = Orchestrator(executor=executor, policy=OrchestratorPolicy(completion_poll_s=0.01))
    executor.orchestrator = orch

    with pytest.raises(InterruptedExecutionError):
        orch.build({"first": 1, "second": 1}, {"second": ["first"]}, 1)

    assert executor.seen[0] == "first"


def test_cancel_issued_while_inputs_are_validated_is_honoured(monkeypatch):
    orch = Orchestrator(policy=OrchestratorPolicy(completion_poll_s=0.01))
    original_validate = orchestrator_module.DependencyGraph.validate

    def validate_then_cancel(graph):
        original_validate(graph)
        orch.cancel()

    monkeypatch.setattr(orchestrator_module.DependencyGraph, "validate", validate_then_cancel)

    with pytest.raises(InterruptedExecutionError):
        orch.build({"A": 1, "B": 1}, {"B": ["A"]}, 1)


def test_orchestrator_is_reusable_after_cancel():
    orch = Orchestrator()
    orch.cancel()

    result = orch.build({"A": 1}, {}, 1)

    assert result.task_ids() == ["A"]
