"""Pattern-matching text cleaner with no external calls."""

import re
from typing import Optional

from grant_ingest.feed.parsers import split_contact
from grant_ingest.models.cleaning import CleanedContact, CleaningResult
from grant_ingest.text import clean_html, extract_email, extract_phone

from .base import TextCleaner

_NON_DIGIT = re.compile(r"\D")

# (country code, total digits) -> country label
INTERNATIONAL_FORMATS: dict[tuple[str, int], str] = {
    ("44", 12): "UK",
    ("33", 12): "France",
    ("49", 13): "Germany",
    ("61", 12): "Australia",
    ("86", 11): "China",
    ("91", 12): "India",
}


def _us_format(digits: str) -> str:
    return f"{digits[0:3]}-{digits[3:6]}-{digits[6:]}"


def format_phone(phone: str) -> tuple[str, bool]:
    """
    Return (formatted, valid).
    US numbers become XXX-XXX-XXXX. International numbers (leading '+' or a
    known country length) keep a '+digits' form with a country label. Anything
    else is returned as written and marked invalid.
    """
    phone = phone.strip()
    digits = _NON_DIGIT.sub("", phone)
    if len(digits) == 10:
        return _us_format(digits), True
    if len(digits) == 11 and digits.startswith("1"):
        return _us_format(digits[1:]), True
    explicit = phone.startswith("+") or phone.startswith("00")
    if phone.startswith("00"):
        digits = digits[2:]
    if 8 <= len(digits) <= 15:
        country = next(
            (label for (code, length), label in INTERNATIONAL_FORMATS.items()
             if length == len(digits) and digits.startswith(code)),
            None,
        )
        if explicit or country:
            formatted = phone if phone.startswith("+") else f"+{digits}"
            return (f"{formatted} ({country})" if country else formatted), True
    return phone, False


class PassthroughTextCleaner(TextCleaner):
    """HTML stripping, whitespace cleanup and regex contact extraction."""

    name = "passthrough"

    def _clean(
        self,
        description: str,
        contact_name: Optional[str],
        contact_email: Optional[str],
        contact_phone: Optional[str],
    ) -> CleaningResult:
        return CleaningResult(
            description=clean_html(description),
            contact=self.clean_contact(contact_name, contact_email, contact_phone),
        )

    def clean_contact(
        self,
        contact_name: Optional[str],
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
    ) -> CleanedContact:
        """Split the contact blob and prefer the dedicated email/phone fields."""
        parts = split_contact(contact_name)
        email = extract_email(contact_email) or parts.email
        raw_phone = extract_phone(contact_phone) or (contact_phone or "").strip() or parts.phone
        phone, phone_valid = format_phone(raw_phone) if raw_phone else (None, None)
        return CleanedContact(
            name=parts.name,
            email=email,
            phone=phone,
            name_source="provided" if parts.name else None,
            phone_valid=phone_valid,
        )
