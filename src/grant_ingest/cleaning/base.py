"""Text cleaning strategy interface."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from grant_ingest.models.cleaning import CleaningResult
from grant_ingest.text import clean_html

logger = logging.getLogger(__name__)


class TextCleaner(ABC):
    """
    Clean a grant description and raw contact fields into a CleaningResult.
    clean() never raises: any failure degrades to HTML-stripped text with
    empty contact fields.
    """

    name: str = ""

    def clean(
        self,
        description: str,
        contact_name: Optional[str] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
    ) -> CleaningResult:
        try:
            return self._clean(description or "", contact_name, contact_email, contact_phone)
        except Exception as e:
            logger.warning("%s failed, using basic HTML cleanup: %s", type(self).__name__, e)
            return CleaningResult(description=clean_html(description) if isinstance(description, str) else "")

    @abstractmethod
    def _clean(
        self,
        description: str,
        contact_name: Optional[str],
        contact_email: Optional[str],
        contact_phone: Optional[str],
    ) -> CleaningResult:
        pass

    def close(self) -> None:
        """Release worker threads or clients held by the cleaner."""
