from __future__ import annotations

import heapq
import queue
import threading
import time
from typing import Iterable, List, Optional, Tuple, Union

from buildrunner.models import STOP, Completion, ReadyItem, Stop


class ReadyQueue:
    """
    Blocking, shortest-duration-first queue from the orchestrator to workers.

    Stop signals are counted separately from the heap and only handed out
    once no real item is pending, so they never take part in ordering.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._heap: List[Tuple[int, str, ReadyItem]] = []
        self._stops = 0

    def put(self, item: ReadyItem) -> None:
        with self._cond:
            heapq.heappush(self._heap, (item.duration, item.task_id, item))
            self._cond.notify()

    def put_many(self, items: Iterable[ReadyItem]) -> None:
        with self._cond:
            for item in items:
                heapq.heappush(self._heap, (item.duration, item.task_id, item))
            self._cond.notify_all()

    def send_stop(self, count: int = 1) -> None:
        with self._cond:
            self._stops += count
            self._cond.notify_all()

    def take(self, timeout: Optional[float] = None) -> Union[ReadyItem, Stop]:
        """Block until an item or a Stop is available. Raises queue.Empty on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._heap and not self._stops:
                if deadline is None:
                    self._cond.wait()
                    continue
                left = deadline - time.monotonic()
                if left <= 0:
                    raise queue.Empty
                self._cond.wait(left)

            if self._heap:
                return heapq.heappop(self._heap)[2]
            self._stops -= 1
            return STOP

    def clear(self) -> List[ReadyItem]:
        """Drop every pending item (Stops are kept). Returns what was dropped."""
        with self._cond:
            dropped = [entry[2] for entry in sorted(self._heap)]
            self._heap.clear()
            return dropped

    def __len__(self) -> int:
        with self._cond:
            return len(self._heap)


class CompletionQueue:
    """FIFO of Completion records from workers back to the orchestrator."""

    def __init__(self) -> None:
        self._q: "queue.Queue[Completion]" = queue.Queue()

    def put(self, completion: Completion) -> None:
        self._q.put(completion)

    def take(self, timeout: Optional[float] = None) -> Completion:
        return self._q.get(timeout=timeout)

    def __len__(self) -> int:
        return self._q.qsize()
