from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import config
from buildrunner.models import ReadyItem


class Executor(Protocol):
    def execute(self, item: ReadyItem) -> None: ...


@dataclass
class SimulatedExecutor:
    """
    Pretends to build the task by sleeping duration * time_scale seconds.
    time_scale=0 returns immediately.
    """
    time_scale: Optional[float] = None

    def execute(self, item: ReadyItem) -> None:
        scale = config.SIMULATED_TIME_SCALE if self.time_scale is None else self.time_scale
        if scale > 0:
            time.sleep(item.duration * scale)


@dataclass
class CallableExecutor:
    fn: Callable[[ReadyItem], Any]

    def execute(self, item: ReadyItem) -> None:
        self.fn(item)


def coerce_executor(executor: Any) -> Executor:
    """
    Accepted shapes:
      - None                       -> SimulatedExecutor()
      - object with .execute(item)
      - plain callable(item)
    """
    if executor is None:
        return SimulatedExecutor()

    if hasattr(executor, "execute"):
        return executor

    if callable(executor):
        return CallableExecutor(executor)

    raise TypeError(
        "Executor must expose .execute(item) or be callable. "
        f"Got: {type(executor).__name__}"
    )
