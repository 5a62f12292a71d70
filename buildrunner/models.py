from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple


@dataclass(frozen=True)
class Task:
    id: str
    duration: int
    dependencies: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ReadyItem:
    """A dispatched task as seen by workers. Ordered shortest-first, then by id."""
    task_id: str
    duration: int

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.duration, self.task_id)

    @classmethod
    def from_task(cls, task: Task) -> "ReadyItem":
        return cls(task_id=task.id, duration=task.duration)

    def __str__(self) -> str:
        return f"{self.task_id}:{self.duration}"


@dataclass(frozen=True)
class Stop:
    """Worker shutdown signal. Never a ReadyItem, never compared by duration."""


STOP = Stop()


@dataclass(frozen=True)
class Completion:
    task_id: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildResult:
    """
    Orchestrator-owned, append-only record of a single build.
    Workers never touch this.
    """
    build_order: List[ReadyItem] = field(default_factory=list)
    batches: List[List[ReadyItem]] = field(default_factory=list)
    completion_order: List[str] = field(default_factory=list)
    elapsed_s: float = 0.0

    def add_batch(self, items: List[ReadyItem]) -> None:
        batch = sorted(items, key=lambda i: i.sort_key)
        self.batches.append(batch)
        self.build_order.extend(batch)

    def add_completion(self, task_id: str) -> None:
        self.completion_order.append(task_id)

    def pairs(self) -> List[Tuple[str, int]]:
        return [(i.task_id, i.duration) for i in self.build_order]

    def task_ids(self) -> List[str]:
        return [i.task_id for i in self.build_order]

    def __str__(self) -> str:
        return "[" + ", ".join(str(i) for i in self.build_order) + "]"
