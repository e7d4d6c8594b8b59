"""Pytest fixtures for grant-ingest tests."""

import io
import zipfile
from datetime import date
from pathlib import Path
from typing import Optional
from xml.sax.saxutils import escape

import pytest

from grant_ingest.config import Settings

TODAY = date(2025, 2, 25)
NAMESPACE = "http://apply.grants.gov/system/OpportunityDetail-V1.0"


def build_extract_xml(records: list[dict], root: str = "Grants") -> str:
    """Build an extract document; list values become repeated elements."""
    body = []
    for record in records:
        fields = []
        for key, value in record.items():
            values = value if isinstance(value, list) else [value]
            fields.extend(f"<{key}>{escape(str(v))}</{key}>" for v in values)
        body.append(f"<OpportunitySynopsisDetail_1_0>{''.join(fields)}</OpportunitySynopsisDetail_1_0>")
    return f'<?xml version="1.0" encoding="UTF-8"?><{root} xmlns="{NAMESPACE}">{"".join(body)}</{root}>'


def build_archive(xml: str, entry_name: str = "GrantsDBExtract.xml", extra_entries: Optional[dict] = None) -> bytes:
    """Zip an extract document the way upstream publishes it."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_STORED) as zf:
        zf.writestr(entry_name, xml)
        for name, content in (extra_entries or {}).items():
            zf.writestr(name, content)
    return buf.getvalue()


class FakeClock:
    """Monotonic clock whose sleep advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)


@pytest.fixture
def sample_record() -> dict:
    """One upstream record with every field the transformer reads."""
    return {
        "OpportunityID": "RG-1",
        "OpportunityTitle": "Rural Broadband Research Grants",
        "OpportunityNumber": "USDA-RUS-2025-01",
        "OpportunityCategory": "D",
        "FundingInstrumentType": "G",
        "CategoryOfFundingActivity": "ST",
        "CategoryExplanation": "Research and Infrastructure for Rural communities",
        "EligibleApplicants": "25",
        "AgencyCode": "USDA-RUS",
        "AgencyName": "Rural Utilities Service",
        "PostDate": "02012025",
        "CloseDate": "02202099",
        "AwardCeiling": "$500,000.00",
        "AwardFloor": "$10,000",
        "EstimatedTotalProgramFunding": "1500000",
        "CostSharingOrMatchingRequirement": "No",
        "Description": "<p>Support for rural &amp; tribal broadband.</p>",
        "AdditionalInformationURL": "https://www.rd.usda.gov/programs",
        "GrantorContactText": "Jane Doe<br/>jane.doe@usda.gov<br/>202-555-0147",
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to a temporary data directory, listing lookup disabled."""
    return Settings(
        data_dir=tmp_path / "data",
        db_path=tmp_path / "grants.db",
        listing_url=None,
        min_archive_bytes=64,
        max_lookback_days=3,
        offline_file=str(tmp_path / "offline" / "GrantsDBExtract20250225v2.xml"),
    )


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Temporary database path for isolated tests."""
    return tmp_path / "grants.db"
