"""Parse the line-tagged contact response returned by external providers."""

import re
from typing import Optional

from grant_ingest.models.cleaning import CleanedContact
from grant_ingest.text import clean_name

from .passthrough import format_phone

_FIELD_LINE = re.compile(r"^[\s*>-]*(name|email|phone)\**\s*:\s*\**\s*(.*?)\s*$", re.IGNORECASE | re.MULTILINE)
_TRAILING_TAG = re.compile(r"\s*\(([a-z\s-]+)\)\s*$", re.IGNORECASE)
_NOT_PROVIDED = {"not provided", "none", "n/a", "unknown", ""}


def _split_tag(value: str) -> tuple[str, Optional[str]]:
    """'Jane Doe (provided)' -> ('Jane Doe', 'provided')."""
    m = _TRAILING_TAG.search(value)
    if not m:
        return value.strip(" []\"'"), None
    return value[: m.start()].strip(" []\"'"), m.group(1).strip().lower()


def parse_contact_response(text: str) -> CleanedContact:
    """
    Map 'name: ... (provided|assumed)', 'email: ...' and
    'phone: ... (given|assumed)-(valid|invalid)' lines onto a CleanedContact.
    Missing lines and 'not provided' values become None; the first line per
    field wins.
    """
    fields: dict[str, tuple[str, Optional[str]]] = {}
    for m in _FIELD_LINE.finditer(text or ""):
        key = m.group(1).lower()
        if key in fields:
            continue
        value, tag = _split_tag(m.group(2))
        if value.lower() in _NOT_PROVIDED:
            continue
        fields[key] = (value, tag)

    contact = CleanedContact()
    if "name" in fields:
        value, tag = fields["name"]
        name = clean_name(value)
        if name:
            contact.name = name
            inferred = tag is not None and (tag.startswith("assumed") or tag.startswith("inferred"))
            contact.name_source = "inferred" if inferred else "provided"
    if "email" in fields:
        value, _ = fields["email"]
        contact.email = value.lower() if "@" in value else None
    if "phone" in fields:
        value, tag = fields["phone"]
        phone, valid = format_phone(value)
        if tag and tag.endswith("-invalid"):
            valid = False
        contact.phone = phone
        contact.phone_valid = valid
    return contact
