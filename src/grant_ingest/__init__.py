"""Grants.gov extract ingestion: download, transform, clean, and delta-upsert."""

__version__ = "0.1.0"
