"""Pipeline orchestration: existing keys, acquire, transform, stamp, store."""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from grant_ingest.cleaning import CleanerRegistry, PassthroughTextCleaner, TextCleaner
from grant_ingest.config import Settings
from grant_ingest.feed import FeedDownloader, RecordTransformer
from grant_ingest.models.run import PipelineRunStats
from grant_ingest.store import GrantStore

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "grants.gov"


class IngestPipeline:
    """
    One ingestion run per call to run(). Callers serialize runs against the
    same store; the run statistics are persisted on success and failure.
    """

    def __init__(
        self,
        store: GrantStore,
        downloader: FeedDownloader,
        transformer: Optional[RecordTransformer] = None,
    ):
        self.store = store
        self.downloader = downloader
        self.transformer = transformer or RecordTransformer()

    def run(
        self,
        use_offline_fallback: bool = False,
        text_cleaner: Optional[TextCleaner] = None,
        source: str = DEFAULT_SOURCE,
        day: Optional[date] = None,
    ) -> PipelineRunStats:
        """
        Ingest the latest extract. Returns the recorded run statistics.
        Errors before persistence are recorded as a failed run and re-raised.
        """
        cleaner = text_cleaner or PassthroughTextCleaner()
        stats = PipelineRunStats(source=source)
        logger.info("Starting %s ingest with %s", source, type(cleaner).__name__)
        try:
            existing_keys = self.store.existing_keys()
            path = self.downloader.acquire(day, use_offline_fallback=use_offline_fallback)
            grants = self.transformer.transform(path, existing_keys, cleaner)
            grants = [
                g.model_copy(update={"source": source, "processing_status": "not_processed"})
                for g in grants
            ]
            return self.store.store(grants, stats)
        except Exception as e:
            logger.error("Ingest run failed: %s", e)
            if not stats.is_recorded:
                stats.error = str(e) or type(e).__name__
                stats.end_time = datetime.now(timezone.utc)
                try:
                    self.store.record_run(stats)
                except Exception as record_error:
                    logger.error("Could not record failed run: %s", record_error)
            raise


def run_pipeline(
    settings: Optional[Settings] = None,
    *,
    use_offline_fallback: bool = False,
    cleaner: Optional[str] = None,
    source: str = DEFAULT_SOURCE,
    today: Optional[Callable[[], date]] = None,
) -> PipelineRunStats:
    """Build the store, downloader and cleaner from settings and run once."""
    settings = settings or Settings.from_env()
    store = GrantStore(
        settings.db_path,
        batch_size=settings.batch_size,
        max_workers=settings.max_workers,
        track_unchanged=settings.track_unchanged,
    )
    pipeline = IngestPipeline(
        store,
        FeedDownloader(settings, today=today),
        RecordTransformer(today=today),
    )
    text_cleaner = CleanerRegistry.get(cleaner or settings.cleaner, settings=settings)
    try:
        return pipeline.run(use_offline_fallback, text_cleaner, source)
    finally:
        text_cleaner.close()
