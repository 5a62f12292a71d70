# schemas.py

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Dict, List, Set

from pydantic import BaseModel, Field, StrictInt, model_validator

from config import DEFAULT_WORKER_COUNT

if TYPE_CHECKING:
    from buildrunner.models import Task


class BuildRequest(BaseModel):
    """
    Typed arguments of a build() call.

    durations defines the task universe; dependencies may omit tasks that
    have no prerequisites. Durations and worker_count are strict ints:
    "5" and True are rejected rather than coerced.
    """
    durations: Dict[str, Annotated[StrictInt, Field(ge=0)]]
    dependencies: Dict[str, Set[str]] = Field(default_factory=dict)
    worker_count: StrictInt = Field(default=DEFAULT_WORKER_COUNT, ge=1)

    @model_validator(mode="after")
    def _dependency_keys_are_tasks(self) -> "BuildRequest":
        unknown = sorted(k for k in self.dependencies if k not in self.durations)
        if unknown:
            raise ValueError(f"Dependencies declared for unknown tasks: {unknown}")
        return self

    def to_tasks(self) -> List["Task"]:
        # buildrunner imports this module; import lazily to avoid the cycle
        from buildrunner.models import Task

        return [
            Task(
                id=task_id,
                duration=duration,
                dependencies=frozenset(self.dependencies.get(task_id, ())),
            )
            for task_id, duration in sorted(self.durations.items())
        ]
