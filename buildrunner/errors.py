from __future__ import annotations

from typing import Any, List, Sequence


class ConfigError(ValueError):
    """Malformed build input. Always raised before the first dispatch."""


class CycleError(ConfigError):
    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle: List[str] = list(cycle)
        super().__init__(
            "The task-dependencies mapping contains a cycle between nodes: "
            f"[{', '.join(self.cycle)}]"
        )


class BuildError(RuntimeError):
    """Base class for failures that abort a running build."""


class InterruptedExecutionError(BuildError):
    pass


class ShutdownTimeoutError(BuildError):
    def __init__(self, *, workers: Sequence[str], timeout_s: float) -> None:
        self.workers: List[str] = list(workers)
        self.timeout_s = timeout_s
        super().__init__(
            f"Workers did not stop within {timeout_s:g}s: {self.workers}"
        )


class TaskExecutionError(BuildError):
    def __init__(self, *, task_id: str, reason: str, cause: Any = None) -> None:
        super().__init__(f"Task {task_id!r} failed: {reason}")
        self.task_id = task_id
        self.reason = reason
        self.cause = cause
