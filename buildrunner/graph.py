from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set

from buildrunner.errors import ConfigError, CycleError
from buildrunner.models import Task


class DependencyGraph:
    """
    Task id -> remaining unmet dependencies.

    Owned by the orchestrator thread only; workers never see it, so there is
    no lock. Entries are removed at dispatch time, and completed ids are
    discarded from the remaining entries by resolve().
    """

    def __init__(self, tasks: Iterable[Task]) -> None:
        self._tasks: Dict[str, Task] = {}
        for task in tasks:
            if task.id in self._tasks:
                raise ConfigError(f"Duplicate task id: {task.id!r}")
            self._tasks[task.id] = task

        unknown: Dict[str, List[str]] = {}
        for task in self._tasks.values():
            missing = sorted(d for d in task.dependencies if d not in self._tasks)
            if missing:
                unknown[task.id] = missing
        if unknown:
            raise ConfigError(f"Unknown dependency ids: {unknown}")

        self._remaining: Dict[str, Set[str]] = {
            t.id: set(t.dependencies) for t in self._tasks.values()
        }

    def ready_tasks(self) -> List[Task]:
        ready = [self._tasks[tid] for tid, deps in self._remaining.items() if not deps]
        return sorted(ready, key=lambda t: (t.duration, t.id))

    def remove(self, task_id: str) -> None:
        if task_id not in self._remaining:
            raise KeyError(f"Task not in graph: {task_id!r}")
        del self._remaining[task_id]

    def resolve(self, completed_id: str) -> None:
        # TODO: keep a reverse (dependency -> dependents) index so resolve
        # does not scan every remaining entry.
        for deps in self._remaining.values():
            deps.discard(completed_id)

    def validate(self) -> None:
        cycle = find_cycle(self._remaining)
        if cycle:
            raise CycleError(cycle)

    def remaining(self) -> Dict[str, Set[str]]:
        return {tid: set(deps) for tid, deps in self._remaining.items()}

    def task(self, task_id: str) -> Task:
        return self._tasks[task_id]

    def is_empty(self) -> bool:
        return not self._remaining

    def __len__(self) -> int:
        return len(self._remaining)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._remaining


def find_cycle(dependencies: Mapping[str, Iterable[str]]) -> Optional[List[str]]:
    """
    Kahn's-algorithm dry run over ``dependencies`` (node -> prerequisites).

    Returns None when every node can be ordered. Otherwise returns one
    concrete cycle, rotated so it starts at its smallest id. Dependencies on
    ids that are not keys are treated as already satisfied.
    """
    deps: Dict[str, Set[str]] = {
        node: {d for d in reqs if d in dependencies} for node, reqs in dependencies.items()
    }
    dependents: Dict[str, Set[str]] = {node: set() for node in deps}
    for node, reqs in deps.items():
        for req in reqs:
            dependents[req].add(node)

    pending = {node: len(reqs) for node, reqs in deps.items()}
    ready = sorted(node for node, count in pending.items() if count == 0)
    while ready:
        node = ready.pop()
        del pending[node]
        for dependent in dependents[node]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                ready.append(dependent)

    if not pending:
        return None

    # Every leftover node still has a leftover prerequisite, so following
    # them must revisit a node.
    node = min(pending)
    path: List[str] = []
    seen: Dict[str, int] = {}
    while node not in seen:
        seen[node] = len(path)
        path.append(node)
        node = min(d for d in deps[node] if d in pending)

    cycle = path[seen[node]:]
    start = cycle.index(min(cycle))
    return cycle[start:] + cycle[:start]


def describe_levels(tasks: Iterable[Task]) -> List[List[Task]]:
    """
    Group tasks into the batches an unlimited pool would dispatch, each
    sorted shortest-first. Raises CycleError when the tasks cannot be ordered.
    """
    graph = DependencyGraph(tasks)
    graph.validate()

    levels: List[List[Task]] = []
    while not graph.is_empty():
        level = graph.ready_tasks()
        for task in level:
            graph.remove(task.id)
        for task in level:
            graph.resolve(task.id)
        levels.append(level)
    return levels
