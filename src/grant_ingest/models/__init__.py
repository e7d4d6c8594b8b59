"""Data models for raw feed records, canonical grants, cleaning output, and runs."""

from grant_ingest.models.cleaning import CleanedContact, CleaningResult
from grant_ingest.models.grant import CanonicalGrant
from grant_ingest.models.raw import RawFeedRecord
from grant_ingest.models.run import FailedItem, PipelineRunStats, RecordOutcome

__all__ = [
    "CanonicalGrant",
    "CleanedContact",
    "CleaningResult",
    "FailedItem",
    "PipelineRunStats",
    "RawFeedRecord",
    "RecordOutcome",
]
