"""Per-run accounting for the ingestion pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RecordOutcome(str, Enum):
    """Classification of one record by the store."""

    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class FailedItem(BaseModel):
    """A record the store could not persist."""

    id: str
    error: str


class PipelineRunStats(BaseModel):
    """Outcome counts and timing for one pipeline invocation."""

    total: int = 0
    new: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    error: Optional[str] = None
    failed_items: list[FailedItem] = Field(default_factory=list)
    source: Optional[str] = None
    run_id: Optional[int] = None

    @property
    def status(self) -> Literal["completed", "failed"]:
        """failed when an error aborted the run or every record failed."""
        if self.error:
            return "failed"
        if self.total > 0 and self.failed == self.total:
            return "failed"
        return "completed"

    @property
    def duration_ms(self) -> int:
        end = self.end_time or datetime.now(timezone.utc)
        return int((end - self.start_time).total_seconds() * 1000)

    @property
    def is_recorded(self) -> bool:
        return self.run_id is not None

    def count(self, outcome: RecordOutcome, record_id: str, error: Optional[str] = None) -> None:
        """Fold one record outcome into the counters."""
        if outcome is RecordOutcome.NEW:
            self.new += 1
        elif outcome is RecordOutcome.UPDATED:
            self.updated += 1
        elif outcome is RecordOutcome.UNCHANGED:
            self.unchanged += 1
        else:
            self.failed += 1
            self.failed_items.append(FailedItem(id=record_id, error=error or "unknown error"))
