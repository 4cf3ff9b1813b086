"""In-memory checkpoint store keyed by run id."""

import copy
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from autoapply.runtime import Interrupt
from autoapply.state import ApplicationState


@dataclass(frozen=True)
class PendingInterrupt:
    """A step parked at a suspension point, waiting for one resume value."""

    step: str
    interrupt: Interrupt
    progress: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Checkpoint:
    run_id: str
    sequence: int
    state: ApplicationState
    next_step: str  # Step to run next, or END once the run has finished.
    pending: PendingInterrupt | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryCheckpointer:
    """Holds every checkpoint of every run for the lifetime of the process.

    Snapshots are deep-copied on the way in and out so neither the executor
    nor a caller can mutate a stored checkpoint. Each run's history is only
    appended to; the latest entry supersedes the earlier ones. A run is
    driven by at most one caller at a time, see ``claim``.
    """

    def __init__(self):
        self._runs: dict[str, list[Checkpoint]] = {}
        self._active: set[str] = set()
        self._lock = threading.Lock()

    def claim(self, run_id: str) -> bool:
        """Mark ``run_id`` as being driven. False if another caller holds it."""
        with self._lock:
            if run_id in self._active:
                return False
            self._active.add(run_id)
            return True

    def release(self, run_id: str) -> None:
        with self._lock:
            self._active.discard(run_id)

    def put(self, checkpoint: Checkpoint) -> None:
        snapshot = copy.deepcopy(checkpoint)
        with self._lock:
            history = self._runs.setdefault(snapshot.run_id, [])
            if history and snapshot.sequence <= history[-1].sequence:
                raise ValueError(
                    f"Checkpoint sequence {snapshot.sequence} for run '{snapshot.run_id}' "
                    f"does not follow {history[-1].sequence}."
                )
            history.append(snapshot)

    def get(self, run_id: str) -> Checkpoint | None:
        """Return the latest checkpoint for ``run_id``, or None."""
        with self._lock:
            history = self._runs.get(run_id)
            latest = history[-1] if history else None
        return copy.deepcopy(latest)

    def history(self, run_id: str) -> list[Checkpoint]:
        with self._lock:
            history = list(self._runs.get(run_id, []))
        return copy.deepcopy(history)

    def __contains__(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._runs
