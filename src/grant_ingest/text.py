"""Shared text patterns and HTML cleanup for descriptions and contact blobs."""

import html
import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(?:\+?\d{1,4}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_HONORIFIC = re.compile(r"^(?:Mr|Mrs|Ms|Dr|Prof)\.\s*", re.IGNORECASE)
_GRANTOR_LABEL = re.compile(r"\bgrantor\b", re.IGNORECASE)
# Line breaks as they appear in the extract, raw or entity-encoded
LINE_BREAK = re.compile(r"(?:<br\s*/?>|&lt;br\s*/?&gt;|\r?\n)", re.IGNORECASE)


def clean_html(text: Optional[str]) -> str:
    """Decode entities, drop tags, and collapse whitespace."""
    if not text:
        return ""
    # Entities first so encoded tags (&lt;p&gt;) are stripped as tags
    decoded = html.unescape(html.unescape(text))
    stripped = _TAG.sub(" ", decoded)
    return _WHITESPACE.sub(" ", stripped).strip()


def extract_email(text: Optional[str]) -> Optional[str]:
    """First email address in text, lowercased."""
    if not text:
        return None
    m = EMAIL_PATTERN.search(text)
    return m.group(0).lower() if m else None


def extract_phone(text: Optional[str]) -> Optional[str]:
    """First phone-like run in text, as written."""
    if not text:
        return None
    m = PHONE_PATTERN.search(text)
    return m.group(0).strip() if m else None


def clean_name(name: Optional[str]) -> str:
    """Remove honorifics, a 'Grantor' label, and a trailing period."""
    if not name:
        return ""
    value = clean_html(name)
    value = _GRANTOR_LABEL.sub("", value)
    value = _HONORIFIC.sub("", value.strip())
    value = _WHITESPACE.sub(" ", value).strip().rstrip(".").strip()
    return value.strip(" :,-")


def infer_name_from_email(email: Optional[str]) -> Optional[str]:
    """jane.doe@agency.gov -> 'Jane Doe'."""
    if not email or "@" not in email:
        return None
    local = email.split("@", 1)[0]
    words = [w for w in re.split(r"[._\-+]+", local) if w and not w.isdigit()]
    if not words:
        return None
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def truncate(text: str, max_length: int, marker: str = "...") -> str:
    """Cut text to max_length characters and append marker when cut."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + marker
