"""Raw feed record representation before transformation."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RawFeedRecord(BaseModel):
    """
    One opportunity element from the extract document.
    Values are strings, lists of strings (repeated elements), or nested dicts.
    """

    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] = Field(default_factory=dict)

    def text(self, key: str) -> str:
        """Return a stripped string value, or '' when absent or not scalar."""
        value = self.data.get(key)
        if isinstance(value, list):
            value = value[0] if value else None
        if value is None or isinstance(value, dict):
            return ""
        return str(value).strip()

    @property
    def opportunity_id(self) -> Optional[str]:
        return self.text("OpportunityID") or None
