# src/a11y_auditor/utils/run_timers.py
import time
from datetime import datetime, timezone
from typing import Optional


class AuditTimer:
    """
    Tracks one audit run: a wall-clock start/end for reporting and a
    monotonic clock for the duration.
    """

    def __init__(self):
        self._start: Optional[float] = None
        self._end: Optional[float] = None
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    def start(self) -> "AuditTimer":
        self._start = time.perf_counter()
        self._end = None
        self.started_at = datetime.now(timezone.utc)
        self.completed_at = None
        return self

    def stop(self) -> None:
        if self._start is not None and self._end is None:
            self._end = time.perf_counter()
            self.completed_at = datetime.now(timezone.utc)

    @property
    def running(self) -> bool:
        return self._start is not None and self._end is None

    @property
    def duration_ms(self) -> int:
        """Elapsed milliseconds; keeps counting while the timer is running."""
        if self._start is None:
            return 0
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)

    @property
    def started_epoch(self) -> Optional[float]:
        return self.started_at.timestamp() if self.started_at else None

    def __repr__(self) -> str:
        return f"<AuditTimer duration={self.duration_ms}ms running={self.running}>"
