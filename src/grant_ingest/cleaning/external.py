"""Shared behavior for cleaners backed by an external text-completion provider."""

import logging
import re
import time
from abc import abstractmethod
from typing import Callable, Optional

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from grant_ingest.errors import RateLimitTimeout
from grant_ingest.models.cleaning import CleanedContact, CleaningResult
from grant_ingest.text import PHONE_PATTERN, clean_html, infer_name_from_email, truncate

from .passthrough import PassthroughTextCleaner
from .prompts import CONTACT_PARSER_INSTRUCTION, DESCRIPTION_INSTRUCTION, SHORT_TEXT_INSTRUCTION
from .rate_limiter import RateLimiter
from .response_parser import parse_contact_response

logger = logging.getLogger(__name__)

# Texts longer than this are always treated as prose
SHORT_TEXT_MAX = 100
_FIRST_LAST = re.compile(r"^[A-Z][a-z]+\s+[A-Z][a-z]+")
_HONORIFIC_PREFIX = re.compile(r"^(?:Mr|Mrs|Ms|Dr|Prof)\.")
_FIELD_PREFIX = re.compile(r"^\s*(?:name|email|phone)\s*:\s*", re.IGNORECASE)


def is_contact_like(text: str) -> bool:
    """Short text that looks like a name, email or phone rather than prose."""
    if len(text) > SHORT_TEXT_MAX:
        return False
    name_like = bool(_FIRST_LAST.match(text)) or bool(_HONORIFIC_PREFIX.match(text)) or len(text.split()) <= 4
    return name_like or "@" in text or bool(PHONE_PATTERN.search(text))


class ExternalModelTextCleaner(PassthroughTextCleaner):
    """
    Delegates description and contact cleaning to a provider call made through
    the rate limiter, with exponential-backoff retries. Each field falls back to
    passthrough output when its call fails. Without an API key the cleaner
    behaves exactly like the passthrough cleaner.
    """

    provider: str = ""
    default_model: str = ""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        max_description_length: int = 5000,
        max_retries: int = 3,
        initial_backoff: float = 2.0,
        queue_timeout: Optional[float] = 300.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key or None
        self.model = model or self.default_model
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_description_length = max_description_length
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.queue_timeout = queue_timeout
        self._sleep = sleep
        self._warned_no_key = False

    @abstractmethod
    def _complete(self, instruction: str, text: str, max_tokens: int) -> str:
        """One provider round trip. Raise on any non-success response."""

    def _request(self, instruction: str, text: str, max_tokens: int) -> str:
        """Provider call through the rate limiter, retried with exponential backoff."""
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.initial_backoff),
            retry=retry_if_not_exception_type(RateLimitTimeout),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(
            self.rate_limiter.call,
            lambda: self._complete(instruction, text, max_tokens),
            timeout=self.queue_timeout,
        )

    def _clean(
        self,
        description: str,
        contact_name: Optional[str],
        contact_email: Optional[str],
        contact_phone: Optional[str],
    ) -> CleaningResult:
        fallback = super()._clean(description, contact_name, contact_email, contact_phone)
        if not self.api_key:
            if not self._warned_no_key:
                logger.warning("No %s API key configured; using passthrough cleaning", self.provider)
                self._warned_no_key = True
            return fallback

        return CleaningResult(
            description=self.clean_description(description, fallback.description),
            contact=self.clean_contact_with_provider(contact_name, fallback.contact),
        )

    def clean_description(self, description: str, fallback: str) -> str:
        text = truncate(clean_html(description), self.max_description_length)
        if not text:
            return ""
        contact_like = is_contact_like(text)
        instruction = SHORT_TEXT_INSTRUCTION if contact_like else DESCRIPTION_INSTRUCTION
        try:
            cleaned = self._request(instruction, text, 2048).strip()
        except Exception as e:
            logger.warning("%s description cleaning failed, using basic cleanup: %s", self.provider, e)
            return truncate(fallback, self.max_description_length)
        if contact_like:
            cleaned = _FIELD_PREFIX.sub("", cleaned)
        return cleaned or text

    def clean_contact_with_provider(self, contact_name: Optional[str], fallback: CleanedContact) -> CleanedContact:
        """Provider-parsed contact; fields the provider omits keep the passthrough value."""
        contact = fallback
        if contact_name and contact_name.strip():
            try:
                response = self._request(CONTACT_PARSER_INSTRUCTION, contact_name, 512)
                parsed = parse_contact_response(response)
            except Exception as e:
                logger.warning("%s contact parsing failed, using pattern extraction: %s", self.provider, e)
            else:
                contact = CleanedContact(
                    name=parsed.name or fallback.name,
                    email=parsed.email or fallback.email,
                    phone=parsed.phone or fallback.phone,
                    name_source=parsed.name_source if parsed.name else fallback.name_source,
                    phone_valid=parsed.phone_valid if parsed.phone else fallback.phone_valid,
                )
        if not contact.name and contact.email:
            inferred = infer_name_from_email(contact.email)
            if inferred:
                contact = contact.model_copy(update={"name": inferred, "name_source": "inferred"})
        return contact

    def close(self) -> None:
        self.rate_limiter.stop()
