from __future__ import annotations

from .errors import (
    BuildError,
    ConfigError,
    CycleError,
    InterruptedExecutionError,
    ShutdownTimeoutError,
    TaskExecutionError,
)
from .executors import CallableExecutor, Executor, SimulatedExecutor
from .graph import DependencyGraph, find_cycle
from .models import BuildResult, ReadyItem, Task
from .orchestrator import BuildRun, Orchestrator, OrchestratorPolicy, State, build

__all__ = [
    "BuildError",
    "BuildResult",
    "BuildRun",
    "CallableExecutor",
    "ConfigError",
    "CycleError",
    "DependencyGraph",
    "Executor",
    "InterruptedExecutionError",
    "Orchestrator",
    "OrchestratorPolicy",
    "ReadyItem",
    "ShutdownTimeoutError",
    "SimulatedExecutor",
    "State",
    "Task",
    "TaskExecutionError",
    "build",
    "find_cycle",
]
