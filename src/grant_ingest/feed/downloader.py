"""Download and extract the daily Grants.gov XML extract with fallbacks."""

import logging
import shutil
import zipfile
import zlib
from datetime import date, timedelta
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urljoin

import httpx

from grant_ingest.config import Settings
from grant_ingest.errors import AcquisitionError, ArchiveValidationError

from .constants import (
    ALTERNATE_SUFFIX,
    ARCHIVE_EXT,
    DOCUMENT_EXT,
    EXTRACT_LINK_PATTERN,
    FILENAME_PREFIX,
    PRIMARY_SUFFIX,
)

logger = logging.getLogger(__name__)


def expected_filename(day: date, suffix: str = PRIMARY_SUFFIX, ext: str = DOCUMENT_EXT) -> str:
    """GrantsDBExtract20250225v2.xml for 2025-02-25."""
    return f"{FILENAME_PREFIX}{day.strftime('%Y%m%d')}{suffix}{ext}"


class _NotFound(Exception):
    """Upstream has no extract for the requested date."""


class FeedDownloader:
    """
    Resolve, fetch, validate and extract the extract archive.
    Tiers, in order: cached document, listing-resolved URL, primary suffix,
    alternate suffix, previous days (bounded), offline fallback file.
    """

    DEFAULT_HEADERS = {
        "User-Agent": "grant-ingest/0.1 (Grants.gov XML extract ingestion)",
    }

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.settings = settings or Settings()
        self._client = client or httpx.Client(
            timeout=self.settings.download_timeout,
            follow_redirects=True,
            headers=self.DEFAULT_HEADERS,
        )
        self._today = today or date.today

    def acquire(
        self,
        day: Optional[date] = None,
        use_alternate_version: bool = False,
        use_offline_fallback: bool = False,
    ) -> Path:
        """
        Return a path to an extracted XML document for the given day.
        Raises AcquisitionError when every tier fails.
        """
        day = day or self._today()
        primary, alternate = (
            (ALTERNATE_SUFFIX, PRIMARY_SUFFIX) if use_alternate_version else (PRIMARY_SUFFIX, ALTERNATE_SUFFIX)
        )

        cached = self._cached(day, primary)
        if cached is not None:
            return cached

        if use_offline_fallback:
            return self._offline_fallback()

        for offset in range(self.settings.max_lookback_days + 1):
            current = day - timedelta(days=offset)
            path = self._try_day(current, primary, alternate, resolve_listing=offset == 0)
            if path is not None:
                return path

        logger.warning(
            "No extract found for %s or the previous %d days", day, self.settings.max_lookback_days
        )
        return self._offline_fallback()

    def _cached(self, day: date, suffix: str) -> Optional[Path]:
        path = self.settings.xml_dir / expected_filename(day, suffix)
        if path.exists():
            logger.info("Using cached extract %s", path)
            return path
        return None

    def _try_day(self, day: date, primary: str, alternate: str, resolve_listing: bool) -> Optional[Path]:
        for suffix in (primary, alternate):
            cached = self._cached(day, suffix)
            if cached is not None:
                return cached

        if resolve_listing:
            url = self.resolve_latest_url()
            if url:
                try:
                    return self._fetch_and_extract(url)
                except (_NotFound, ArchiveValidationError, httpx.HTTPError) as e:
                    logger.warning("Listing-resolved extract %s failed: %s", url, e)

        try:
            return self._fetch_and_extract(self._direct_url(day, primary))
        except _NotFound:
            logger.warning("No extract published for %s, trying previous day", day.isoformat())
            return None
        except (ArchiveValidationError, httpx.HTTPError) as e:
            logger.warning("Extract for %s failed (%s), trying alternate version", day.isoformat(), e)

        try:
            return self._fetch_and_extract(self._direct_url(day, alternate))
        except (_NotFound, ArchiveValidationError, httpx.HTTPError) as e:
            logger.warning("Alternate extract for %s failed: %s", day.isoformat(), e)
            return None

    def _direct_url(self, day: date, suffix: str) -> str:
        return f"{self.settings.feed_base_url.rstrip('/')}/{expected_filename(day, suffix, ARCHIVE_EXT)}"

    def resolve_latest_url(self) -> Optional[str]:
        """
        Scan the listing page for extract archive links and return the newest.
        Returns None when the listing is disabled, unreachable, or has no links.
        """
        listing_url = self.settings.listing_url
        if not listing_url:
            return None
        try:
            response = self._client.get(listing_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Listing page %s unavailable: %s", listing_url, e)
            return None
        links = EXTRACT_LINK_PATTERN.findall(response.text)
        if not links:
            logger.debug("No extract links on %s", listing_url)
            return None
        latest = sorted(links, key=lambda link: link.rsplit("/", 1)[-1])[-1]
        return urljoin(listing_url, latest)

    def _fetch_and_extract(self, url: str) -> Path:
        logger.info("Downloading extract %s", url)
        response = self._client.get(url)
        if response.status_code == 404:
            raise _NotFound(url)
        response.raise_for_status()
        content = response.content
        if len(content) < self.settings.min_archive_bytes:
            raise ArchiveValidationError(
                f"Archive too small ({len(content)} bytes, minimum {self.settings.min_archive_bytes})"
            )

        archive_name = url.rsplit("/", 1)[-1].split("?", 1)[0]
        extracts_dir = self.settings.extracts_dir
        extracts_dir.mkdir(parents=True, exist_ok=True)
        archive_path = extracts_dir / archive_name
        archive_path.write_bytes(content)
        return self._extract(archive_path)

    def _extract(self, archive_path: Path) -> Path:
        """Validate the archive holds exactly one XML document and write it to xml_dir."""
        if not zipfile.is_zipfile(archive_path):
            raise ArchiveValidationError(f"{archive_path.name} is not a zip archive")
        xml_dir = self.settings.xml_dir
        xml_dir.mkdir(parents=True, exist_ok=True)
        # Entry names are not trusted as paths
        target = xml_dir / (archive_path.stem + DOCUMENT_EXT)
        # The cache path only ever holds a complete document
        partial = target.with_name(target.name + ".part")
        try:
            with zipfile.ZipFile(archive_path) as zf:
                entries = [n for n in zf.namelist() if n.lower().endswith(DOCUMENT_EXT)]
                if len(entries) != 1:
                    raise ArchiveValidationError(
                        f"{archive_path.name} contains {len(entries)} {DOCUMENT_EXT} entries, expected 1"
                    )
                with zf.open(entries[0]) as src, partial.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
            partial.replace(target)
        except (zipfile.BadZipFile, zlib.error, EOFError) as e:
            raise ArchiveValidationError(f"{archive_path.name} is corrupt: {e}") from e
        finally:
            partial.unlink(missing_ok=True)
        logger.info("Extracted %s to %s", entries[0], target)
        return target

    def _offline_fallback(self) -> Path:
        path = self.settings.offline_path
        if path.exists():
            logger.warning("Using offline fallback extract %s", path)
            return path
        raise AcquisitionError(f"All download attempts failed and no offline extract at {path}")
