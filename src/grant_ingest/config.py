"""Runtime settings loaded from environment variables or a YAML file."""

import os
from pathlib import Path
from typing import Any, Mapping, Optional

try:
    import yaml
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "PyYAML is required for settings files. Run: pip install -e ."
    ) from e
from pydantic import BaseModel, Field

ENV_PREFIX = "GRANT_INGEST_"


class RateLimitSettings(BaseModel):
    """Outbound call budget for one external text-cleaning credential."""

    min_interval: float = Field(default=2.0, description="Seconds to wait after each call")
    per_minute: int = 25
    per_day: int = 1400


class Settings(BaseModel):
    """Pipeline configuration."""

    db_path: Path = Path("grant_ingest.db")
    data_dir: Path = Path("data")

    feed_base_url: str = "https://prod-grants-gov-chatbot.s3.amazonaws.com/extracts"
    listing_url: Optional[str] = "https://www.grants.gov/xml-extract"
    offline_file: str = "GrantsDBExtract20250225v2.xml"
    max_lookback_days: int = 7
    download_timeout: float = 60.0
    min_archive_bytes: int = 1024

    batch_size: int = 50
    max_workers: int = 8
    track_unchanged: bool = True

    cleaner: str = "passthrough"
    llm_model: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    max_description_length: int = 5000
    max_retries: int = 3
    initial_backoff: float = 2.0
    queue_timeout: Optional[float] = 300.0
    gemini_rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    openrouter_rate_limit: RateLimitSettings = Field(
        default_factory=lambda: RateLimitSettings(min_interval=10.0, per_minute=6, per_day=1000)
    )

    log_level: str = "INFO"

    @property
    def xml_dir(self) -> Path:
        return self.data_dir / "xml"

    @property
    def extracts_dir(self) -> Path:
        return self.data_dir / "extracts"

    @property
    def offline_path(self) -> Path:
        """Offline fallback extract; bare file names resolve inside xml_dir."""
        path = Path(self.offline_file)
        return path if path.is_absolute() or path.parent != Path(".") else self.xml_dir / path

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from GRANT_INGEST_* variables plus provider API keys."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for name in cls.model_fields:
            value = env.get(ENV_PREFIX + name.upper())
            if value is not None and value != "":
                data[name] = value
        # Shorter aliases used by deploy scripts
        if env.get(ENV_PREFIX + "DB"):
            data.setdefault("db_path", env[ENV_PREFIX + "DB"])
        if env.get(ENV_PREFIX + "OFFLINE_FILE"):
            data["offline_file"] = env[ENV_PREFIX + "OFFLINE_FILE"]
        if env.get("GEMINI_API_KEY"):
            data.setdefault("gemini_api_key", env["GEMINI_API_KEY"])
        if env.get("OPENROUTER_API_KEY"):
            data.setdefault("openrouter_api_key", env["OPENROUTER_API_KEY"])
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: str | Path, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Load settings from YAML. Environment values form the base; file keys override."""
        loaded = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Settings file must contain a mapping: {path}")
        base = cls.from_env(environ).model_dump()
        for key, value in loaded.items():
            if key in ("gemini_rate_limit", "openrouter_rate_limit") and isinstance(value, dict):
                base[key] = {**base[key], **value}
            else:
                base[key] = value
        return cls.model_validate(base)
