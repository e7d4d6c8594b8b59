"""Pluggable text cleaning for descriptions and grantor contacts."""

from .base import TextCleaner
from .external import ExternalModelTextCleaner
from .gemini import GeminiTextCleaner
from .openrouter import OpenRouterTextCleaner
from .passthrough import PassthroughTextCleaner, format_phone
from .rate_limiter import RateLimiter, RateLimiterState
from .registry import CleanerRegistry
from .response_parser import parse_contact_response

__all__ = [
    "CleanerRegistry",
    "ExternalModelTextCleaner",
    "GeminiTextCleaner",
    "OpenRouterTextCleaner",
    "PassthroughTextCleaner",
    "RateLimiter",
    "RateLimiterState",
    "TextCleaner",
    "format_phone",
    "parse_contact_response",
]
