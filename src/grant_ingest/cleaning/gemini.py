"""Text cleaner backed by the Gemini generateContent API."""

from typing import Optional

import httpx

from grant_ingest.errors import ProviderError

from .external import ExternalModelTextCleaner

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiTextCleaner(ExternalModelTextCleaner):
    """Posts instruction + text as two parts of one user turn."""

    name = "gemini"
    provider = "Gemini"
    default_model = "gemini-2.0-flash-lite"

    def __init__(self, api_key: Optional[str], *, client: Optional[httpx.Client] = None, **kwargs):
        super().__init__(api_key, **kwargs)
        self._client = client or httpx.Client(timeout=60.0)

    @property
    def api_url(self) -> str:
        return f"{GEMINI_API_BASE}/{self.model}:generateContent"

    def _complete(self, instruction: str, text: str, max_tokens: int) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": instruction}, {"text": text}]}],
            "generationConfig": {
                "temperature": 0.1,
                "topP": 0.95,
                "topK": 40,
                "maxOutputTokens": max_tokens,
            },
        }
        resp = self._client.post(
            self.api_url,
            json=payload,
            headers={"x-goog-api-key": self.api_key or ""},
        )
        if resp.status_code >= 400:
            raise ProviderError(f"Gemini API error ({resp.status_code}): {resp.text[:500]}")
        try:
            return resp.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Invalid response format from Gemini API: {e}") from e

    def close(self) -> None:
        super().close()
        self._client.close()
