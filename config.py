# config.py
from __future__ import annotations

# ---------------------------
# Worker pool
# ---------------------------
DEFAULT_WORKER_COUNT = 4

# Bound on how long the orchestrator waits for workers to acknowledge Stop
DRAIN_TIMEOUT_S = 10.0

# ---------------------------
# Orchestrator loop
# ---------------------------

# Completion waits are sliced so cancel() is noticed promptly
COMPLETION_POLL_S = 0.05

# SimulatedExecutor sleeps duration * SIMULATED_TIME_SCALE seconds.
# 0.0 means "pretend" (no sleeping at all).
SIMULATED_TIME_SCALE = 0.0

# [ORCH] / [WORKER-n] trace lines
TRACE = False
