"""Parsing and field normalization for the Grants.gov XML extract."""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from grant_ingest.errors import FeedFormatError
from grant_ingest.models.raw import RawFeedRecord
from grant_ingest.text import EMAIL_PATTERN, LINE_BREAK, PHONE_PATTERN, clean_name

from .constants import (
    ACTIVITY_CATEGORY_CODES,
    ACTIVITY_KEYWORDS,
    ELIGIBILITY_CODES,
    RECORD_TAG,
    ROOT_TAG,
)

_NON_MONEY = re.compile(r"[^0-9.]")


@dataclass(frozen=True)
class ContactParts:
    """Best-effort split of a free-text contact blob."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


def _local_name(tag: str) -> str:
    """Strip an XML namespace: '{ns}CloseDate' -> 'CloseDate'."""
    return tag.rsplit("}", 1)[-1]


def _element_value(element: ET.Element) -> Any:
    """Leaf -> stripped text; group -> dict, with repeated children collected into lists."""
    children = list(element)
    if not children:
        return (element.text or "").strip()
    value: dict[str, Any] = {}
    for child in children:
        key = _local_name(child.tag)
        child_value = _element_value(child)
        if key in value:
            existing = value[key]
            if not isinstance(existing, list):
                value[key] = [existing]
            value[key].append(child_value)
        else:
            value[key] = child_value
    return value


def parse_feed(path: str | Path) -> list[RawFeedRecord]:
    """
    Parse the extract document into raw records, in document order.
    Raises FeedFormatError when the XML is malformed or the root collection is missing.
    """
    try:
        tree = ET.parse(path)
    except ET.ParseError as e:
        raise FeedFormatError(f"Invalid XML in {path}: {e}") from e
    root = tree.getroot()
    if _local_name(root.tag) != ROOT_TAG:
        raise FeedFormatError(
            f"Invalid XML format: root element is {_local_name(root.tag)!r}, expected {ROOT_TAG!r}"
        )
    records = [
        RawFeedRecord(data=_element_value(child))
        for child in root
        if _local_name(child.tag) == RECORD_TAG
    ]
    if not records:
        raise FeedFormatError(f"Invalid XML format: no {RECORD_TAG} elements found")
    return records


def parse_close_date(value: Optional[str]) -> Optional[date]:
    """Parse an 8-digit MMDDYYYY date. Anything else is None."""
    if not value:
        return None
    value = value.strip()
    if len(value) != 8 or not value.isdigit():
        return None
    try:
        return datetime.strptime(value, "%m%d%Y").date()
    except ValueError:
        return None


def convert_date(value: Optional[str]) -> Optional[str]:
    """MMDDYYYY -> YYYY-MM-DD, or None when absent or malformed."""
    parsed = parse_close_date(value)
    return parsed.isoformat() if parsed else None


def is_expired(close_date: Optional[str], today: date) -> bool:
    """True when the close date is strictly before today. Missing dates never expire."""
    parsed = parse_close_date(close_date)
    return parsed is not None and parsed < today


def parse_funding(amount: Optional[str]) -> Optional[int]:
    """'$1,500,000.00' -> 1500000. Cents are dropped; no digits -> None."""
    if not amount:
        return None
    cleaned = _NON_MONEY.sub("", str(amount))
    whole = cleaned.split(".", 1)[0]
    return int(whole) if whole else None


def _flatten(value: Any, group_key: Optional[str] = None) -> list[str]:
    """Collect string leaves from a scalar, list, or {group_key: ...} dict."""
    if value is None:
        return []
    if isinstance(value, dict):
        if group_key and group_key in value:
            return _flatten(value[group_key], group_key)
        return [s for v in value.values() for s in _flatten(v, group_key)]
    if isinstance(value, list):
        return [s for v in value for s in _flatten(v, group_key)]
    return [str(value)]


def _ordered_unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def expand_eligibility(value: Any) -> list[str]:
    """Map eligibility codes to labels; unknown codes pass through unchanged."""
    codes: list[str] = []
    for raw in _flatten(value, "ApplicantType"):
        codes.extend(c.strip() for c in raw.split(",") if c.strip())
    return _ordered_unique(ELIGIBILITY_CODES.get(code, code) for code in codes)


def infer_activity_categories(codes: Any, explanation: Optional[str] = None) -> list[str]:
    """Mapped category codes first, then keyword tags found in the explanation."""
    tags: list[str] = []
    for code in _flatten(codes):
        label = ACTIVITY_CATEGORY_CODES.get(code.strip().upper())
        if label:
            tags.append(label)
    if explanation:
        tags.extend(kw for kw in ACTIVITY_KEYWORDS if kw in explanation)
    return _ordered_unique(tags)


def split_contact(blob: Optional[str]) -> ContactParts:
    """
    Split a contact blob into name/email/phone.
    The first email and first phone anywhere in the blob win; the name is the
    first line that matches neither pattern.
    """
    if not blob or not blob.strip():
        return ContactParts()
    email_match = EMAIL_PATTERN.search(blob)
    phone_match = PHONE_PATTERN.search(blob)
    name: Optional[str] = None
    for segment in LINE_BREAK.split(blob):
        segment = segment.strip()
        if not segment or EMAIL_PATTERN.search(segment) or PHONE_PATTERN.search(segment):
            continue
        candidate = clean_name(segment)
        if candidate:
            name = candidate
            break
    return ContactParts(
        name=name,
        email=email_match.group(0).lower() if email_match else None,
        phone=phone_match.group(0).strip() if phone_match else None,
    )
