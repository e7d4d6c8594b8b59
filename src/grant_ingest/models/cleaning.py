"""Output of a text cleaning strategy."""

from typing import Optional

from pydantic import BaseModel, Field

from grant_ingest.models.grant import NameSource


class CleanedContact(BaseModel):
    """Grantor contact fields with provenance tags."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    name_source: Optional[NameSource] = None
    phone_valid: Optional[bool] = None


class CleaningResult(BaseModel):
    """Cleaned description and contact for one record."""

    description: str = ""
    contact: CleanedContact = Field(default_factory=CleanedContact)
