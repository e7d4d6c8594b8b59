"""Grants.gov XML extract acquisition and transformation."""

from grant_ingest.feed.downloader import FeedDownloader, expected_filename
from grant_ingest.feed.transformer import RecordTransformer

__all__ = ["FeedDownloader", "RecordTransformer", "expected_filename"]
