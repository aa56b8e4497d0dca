"""
Records the outcome of every Space handled during a run.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class OutcomeStatus(str, Enum):
    OK = "ok"
    ALREADY_DOWNLOADED = "already_downloaded"
    ENDED = "ended"
    FAILED = "failed"
    VETOED = "vetoed"


@dataclass(frozen=True)
class SpaceOutcome:
    """What happened to one Space (or one user lookup) in a run."""

    source: str
    status: OutcomeStatus
    reason: str = ""
    output: Optional[Path] = None


@dataclass
class DownloadStats:
    """Tracks outcomes for a download run."""

    outcomes: list[SpaceOutcome] = field(default_factory=list)
    start_time: float = field(default_factory=time.monotonic, repr=False)

    def record(self, outcome: SpaceOutcome) -> SpaceOutcome:
        self.outcomes.append(outcome)
        return outcome

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def downloaded(self) -> int:
        return self.count(OutcomeStatus.OK)

    @property
    def skipped(self) -> int:
        return self.count(OutcomeStatus.ALREADY_DOWNLOADED)

    @property
    def ended(self) -> int:
        return self.count(OutcomeStatus.ENDED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeStatus.FAILED) + self.count(OutcomeStatus.VETOED)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time
