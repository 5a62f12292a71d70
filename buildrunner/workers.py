from __future__ import annotations

import threading
import time
from typing import List, Optional

import config
from buildrunner.errors import ConfigError, ShutdownTimeoutError
from buildrunner.executors import Executor
from buildrunner.models import Completion, Stop
from buildrunner.queues import CompletionQueue, ReadyQueue


class WorkerPool:
    """
    Fixed-size pool of worker threads.

    Each worker:
    - blocks on ReadyQueue.take()
    - exits when it receives a Stop
    - otherwise executes the item and reports a Completion (with the error,
      if the executor raised)
    """

    def __init__(
        self,
        size: int,
        ready: ReadyQueue,
        completed: CompletionQueue,
        executor: Executor,
        *,
        trace: bool = False,
    ) -> None:
        if size <= 0:
            raise ConfigError(f"Worker count must be positive, got {size}")
        self.size = size
        self.ready = ready
        self.completed = completed
        self.executor = executor
        self.trace = trace
        self._threads: List[threading.Thread] = []

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("WorkerPool already started")
        for n in range(1, self.size + 1):
            t = threading.Thread(target=self._work, name=f"WORKER-{n}", daemon=True)
            self._threads.append(t)
            t.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Send one Stop per worker, then wait for all of them against a single
        deadline. Raises ShutdownTimeoutError if any worker is still alive.
        """
        timeout = config.DRAIN_TIMEOUT_S if timeout is None else timeout
        self.ready.send_stop(self.size)

        deadline = time.monotonic() + timeout
        for t in self._threads:
            t.join(max(0.0, deadline - time.monotonic()))

        stuck = self.alive()
        if stuck:
            raise ShutdownTimeoutError(workers=stuck, timeout_s=timeout)

    def alive(self) -> List[str]:
        return [t.name for t in self._threads if t.is_alive()]

    def _work(self) -> None:
        name = threading.current_thread().name
        if self.trace:
            print(f"[{name}] start")

        while True:
            item = self.ready.take()
            if isinstance(item, Stop):
                break

            if self.trace:
                print(f"[{name}] run: {item}")
            try:
                self.executor.execute(item)
            except BaseException as e:
                if self.trace:
                    print(f"[{name}] failed: {item} error={e!r}")
                # Always report, so the orchestrator never waits on a dead worker.
                self.completed.put(Completion(task_id=item.task_id, error=e))
                if not isinstance(e, Exception):
                    # SystemExit and friends end this worker; the error itself
                    # reaches the caller as the cause of TaskExecutionError.
                    if self.trace:
                        print(f"[{name}] exit after {type(e).__name__}")
                    return
                continue

            self.completed.put(Completion(task_id=item.task_id))

        if self.trace:
            print(f"[{name}] stop")
