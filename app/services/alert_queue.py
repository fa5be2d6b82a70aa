"""Deduplicating FIFO of alerts plus the display phase they are in."""

from __future__ import annotations

import enum
import threading
from collections import deque
from dataclasses import dataclass, field

from app.models.alert import Alert, AlertId


class Phase(str, enum.Enum):
    IDLE = "idle"
    DISPLAYING = "displaying"
    ACKNOWLEDGING = "acknowledging"
    SETTLING = "settling"


class PhaseError(RuntimeError):
    """A phase transition was requested from the wrong phase."""


@dataclass(frozen=True)
class QueueSnapshot:
    phase: Phase
    pending: tuple[Alert, ...]
    seen_count: int

    @property
    def active(self) -> Alert | None:
        if self.phase is Phase.IDLE or not self.pending:
            return None
        return self.pending[0]


@dataclass
class AlertQueue:
    """Single source of truth for pending alerts.

    ``pending`` holds alerts in admission order; its head is the active alert
    whenever ``phase`` is not IDLE. ``seen_ids`` only ever grows, so an id that
    has been admitted once is rejected for the rest of the process lifetime.
    Every read and write happens under ``_lock``.
    """

    pending: deque[Alert] = field(default_factory=deque)
    seen_ids: set[AlertId] = field(default_factory=set)
    phase: Phase = Phase.IDLE
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def try_admit(self, alert: Alert) -> bool:
        with self._lock:
            if alert.id in self.seen_ids:
                return False
            self.seen_ids.add(alert.id)
            self.pending.append(alert)
            return True

    def begin_display(self) -> Alert | None:
        """Move IDLE -> DISPLAYING if anything is waiting; return the new active alert."""
        with self._lock:
            if self.phase is not Phase.IDLE or not self.pending:
                return None
            self.phase = Phase.DISPLAYING
            return self.pending[0]

    def begin_ack(self) -> Alert:
        with self._lock:
            self._expect(Phase.DISPLAYING)
            self.phase = Phase.ACKNOWLEDGING
            return self.pending[0]

    def begin_settle(self) -> Alert:
        with self._lock:
            self._expect(Phase.ACKNOWLEDGING)
            self.phase = Phase.SETTLING
            return self.pending[0]

    def finish(self) -> Alert:
        """Drop the head that just settled and go back to IDLE."""
        with self._lock:
            self._expect(Phase.SETTLING)
            self.phase = Phase.IDLE
            return self.pending.popleft()

    def interrupt(self) -> Alert | None:
        """Return to IDLE after an aborted display chain.

        A head that was already acknowledged (SETTLING) is dropped; otherwise it
        stays queued so the next display picks it up again.
        """
        with self._lock:
            if self.phase is Phase.IDLE:
                return None
            dropped = self.pending.popleft() if self.phase is Phase.SETTLING else None
            self.phase = Phase.IDLE
            return dropped

    def active(self) -> Alert | None:
        with self._lock:
            if self.phase is Phase.IDLE or not self.pending:
                return None
            return self.pending[0]

    def is_settling(self) -> bool:
        with self._lock:
            return self.phase is Phase.SETTLING

    def snapshot(self) -> QueueSnapshot:
        with self._lock:
            return QueueSnapshot(
                phase=self.phase,
                pending=tuple(self.pending),
                seen_count=len(self.seen_ids),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self.pending)

    def _expect(self, phase: Phase) -> None:
        if self.phase is not phase:
            raise PhaseError(f"expected phase {phase.value}, queue is {self.phase.value}")


__all__ = ["AlertQueue", "Phase", "PhaseError", "QueueSnapshot"]
