"""Exception hierarchy for the ingestion pipeline."""


class GrantIngestError(Exception):
    """Base class for pipeline errors."""


class AcquisitionError(GrantIngestError):
    """Every download tier failed and no offline extract is available."""


class ArchiveValidationError(AcquisitionError):
    """Downloaded payload is not a usable extract archive."""


class FeedFormatError(GrantIngestError):
    """Extract document is unparseable or missing its root collection."""


class ProviderError(GrantIngestError):
    """External text-cleaning provider returned an error or malformed response."""


class RunAlreadyRecordedError(GrantIngestError):
    """Run statistics may only be persisted once."""


class RateLimitTimeout(ProviderError):
    """A queued provider call was not served before the caller's timeout."""
