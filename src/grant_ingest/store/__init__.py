"""Grant persistence."""

from .sqlite_store import GrantStore

__all__ = ["GrantStore"]
