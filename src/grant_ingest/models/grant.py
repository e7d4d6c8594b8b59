"""Canonical grant model stored by the pipeline."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

NameSource = Literal["provided", "inferred"]
ProcessingStatus = Literal["not_processed", "processed"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CanonicalGrant(BaseModel):
    """Normalized, storage-ready grant opportunity."""

    opportunity_id: str = Field(..., min_length=1, description="Upstream natural key")
    opportunity_number: str = ""
    title: str = ""
    category: str = ""
    funding_type: str = ""
    activity_category: list[str] = Field(default_factory=list)
    eligible_applicants: list[str] = Field(default_factory=list)

    agency_name: str = ""
    agency_code: str = ""

    post_date: Optional[str] = Field(default=None, description="ISO date YYYY-MM-DD")
    close_date: Optional[str] = Field(default=None, description="ISO date YYYY-MM-DD")

    total_funding: Optional[int] = None
    award_ceiling: Optional[int] = None
    award_floor: Optional[int] = None
    cost_sharing: bool = False

    description: str = ""
    additional_info_url: str = ""

    grantor_contact_name: Optional[str] = None
    grantor_contact_email: Optional[str] = None
    grantor_contact_phone: Optional[str] = None
    grantor_contact_name_source: Optional[NameSource] = None
    grantor_contact_phone_valid: Optional[bool] = None

    source: str = "grants.gov"
    processing_status: ProcessingStatus = "not_processed"

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# Fields that identify or timestamp a row rather than describe the opportunity
BOOKKEEPING_FIELDS = frozenset({"created_at", "updated_at"})


def mutable_fields() -> list[str]:
    """Columns overwritten on update, in model order."""
    return [
        name
        for name in CanonicalGrant.model_fields
        if name not in BOOKKEEPING_FIELDS and name != "opportunity_id"
    ]
