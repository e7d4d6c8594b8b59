"""Registry for discovering and instantiating text cleaners."""

from typing import TYPE_CHECKING, Optional, Type

from .base import TextCleaner
from .gemini import GeminiTextCleaner
from .openrouter import OpenRouterTextCleaner
from .passthrough import PassthroughTextCleaner
from .rate_limiter import RateLimiter

if TYPE_CHECKING:
    from grant_ingest.config import Settings


class CleanerRegistry:
    """Discovers and provides text cleaners."""

    _cleaners: dict[str, Type[TextCleaner]] = {
        "passthrough": PassthroughTextCleaner,
        "gemini": GeminiTextCleaner,
        "openrouter": OpenRouterTextCleaner,
    }

    @classmethod
    def get(cls, name: str, settings: Optional["Settings"] = None, **kwargs) -> TextCleaner:
        """
        Get a cleaner by name. External cleaners are configured from settings
        (API key, model, rate limits, retry budget); kwargs override.
        """
        cleaner_cls = cls._cleaners.get(name.lower())
        if not cleaner_cls:
            raise ValueError(f"Unknown cleaner: {name}. Available: {list(cls._cleaners.keys())}")
        if cleaner_cls is PassthroughTextCleaner:
            return cleaner_cls()

        if settings is None:
            from grant_ingest.config import Settings

            settings = Settings.from_env()
        if cleaner_cls is GeminiTextCleaner:
            api_key, limits = settings.gemini_api_key, settings.gemini_rate_limit
        else:
            api_key, limits = settings.openrouter_api_key, settings.openrouter_rate_limit
        options = {
            "model": settings.llm_model,
            "rate_limiter": RateLimiter(limits.min_interval, limits.per_minute, limits.per_day),
            "max_description_length": settings.max_description_length,
            "max_retries": settings.max_retries,
            "initial_backoff": settings.initial_backoff,
            "queue_timeout": settings.queue_timeout,
        }
        options.update(kwargs)
        api_key = options.pop("api_key", api_key)
        return cleaner_cls(api_key, **options)

    @classmethod
    def available(cls) -> list[str]:
        """Return list of available cleaner names."""
        return list(cls._cleaners.keys())
