"""Text cleaner backed by OpenRouter's OpenAI-compatible chat completions API."""

from typing import Optional

from openai import OpenAI

from grant_ingest.errors import ProviderError

from .external import ExternalModelTextCleaner

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterTextCleaner(ExternalModelTextCleaner):
    """Instruction as the system message, text as the user message."""

    name = "openrouter"
    provider = "OpenRouter"
    default_model = "mistralai/mistral-7b-instruct"

    def __init__(self, api_key: Optional[str], *, client: Optional[OpenAI] = None, **kwargs):
        super().__init__(api_key, **kwargs)
        self._client = client
        if self._client is None and self.api_key:
            # Retries are handled by the cleaner's own backoff
            self._client = OpenAI(api_key=self.api_key, base_url=OPENROUTER_BASE_URL, max_retries=0)

    def _complete(self, instruction: str, text: str, max_tokens: int) -> str:
        if self._client is None:
            raise ProviderError("OpenRouter client is not configured")
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": instruction},
                {"role": "user", "content": text},
            ],
            temperature=0.1,
            max_tokens=max_tokens,
        )
        if not response.choices:
            raise ProviderError("Invalid response format from OpenRouter API: no choices")
        content = response.choices[0].message.content
        if not content:
            raise ProviderError("Empty completion from OpenRouter API")
        return content
