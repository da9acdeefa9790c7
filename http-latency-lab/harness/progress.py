"""
Progress reporting and failure notifications for a benchmark run.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class FailureNotice:
    """A failure worth telling the user about, reported once per kind."""

    endpoint_index: int
    uri: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"[{self.endpoint_index}] {self.uri}: {self.kind}: {self.message}"


FailureCallback = Callable[[FailureNotice], None]


class ProgressTracker:
    """Turns attempt ticks into a non-decreasing fraction in [0, 1]."""

    def __init__(self, total: int, on_progress: Optional[ProgressCallback] = None):
        self.total = max(total, 0)
        self.on_progress = on_progress
        self._completed = 0

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return min(self._completed / self.total, 1.0)

    def tick(self) -> None:
        """Count one finished attempt."""
        self._completed += 1
        self._report()

    def advance_to(self, completed: int) -> None:
        """Skip ahead, e.g. past the unfinished attempts of an aborted endpoint."""
        if completed > self._completed:
            self._completed = completed
            self._report()

    def _report(self) -> None:
        if not self.on_progress:
            return
        try:
            self.on_progress(self.fraction)
        except Exception:
            logger.exception("Progress callback failed; dropping further progress updates")
            self.on_progress = None
