"""Tests for provider-backed cleaners: routing, retries, fallback and provenance."""

import json
from typing import Callable, Optional
from unittest.mock import MagicMock

import httpx
import pytest

from conftest import FakeClock
from grant_ingest.cleaning.external import ExternalModelTextCleaner, is_contact_like
from grant_ingest.cleaning.gemini import GeminiTextCleaner
from grant_ingest.cleaning.openrouter import OpenRouterTextCleaner
from grant_ingest.cleaning.prompts import (
    CONTACT_PARSER_INSTRUCTION,
    DESCRIPTION_INSTRUCTION,
    SHORT_TEXT_INSTRUCTION,
)
from grant_ingest.cleaning.rate_limiter import RateLimiter
from grant_ingest.errors import ProviderError

LONG_DESCRIPTION = (
    "<p>This program supports rural broadband deployment across underserved counties, "
    "including planning, construction and community training.</p>"
)


class ScriptedCleaner(ExternalModelTextCleaner):
    """Provider stub: answers from a function and records every call."""

    name = "scripted"
    provider = "Scripted"

    def __init__(self, respond: Callable[[str, str], str], api_key: Optional[str] = "key", **kwargs):
        self.backoff_sleeps: list[float] = []
        clock = FakeClock()
        kwargs.setdefault("rate_limiter", RateLimiter(0.0, 100, 1000, clock=clock, sleep=clock.sleep))
        kwargs.setdefault("sleep", self.backoff_sleeps.append)
        super().__init__(api_key, **kwargs)
        self.respond = respond
        self.calls: list[tuple[str, str]] = []

    def _complete(self, instruction: str, text: str, max_tokens: int) -> str:
        self.calls.append((instruction, text))
        return self.respond(instruction, text)


@pytest.fixture
def make_cleaner():
    created: list[ScriptedCleaner] = []

    def factory(respond, **kwargs) -> ScriptedCleaner:
        cleaner = ScriptedCleaner(respond, **kwargs)
        created.append(cleaner)
        return cleaner

    yield factory
    for cleaner in created:
        cleaner.close()


class TestClassification:
    def test_contact_like_texts(self) -> None:
        assert is_contact_like("Jane Doe") is True
        assert is_contact_like("Dr. Smith, Program Officer, Office of Grants") is True
        assert is_contact_like("grants@agency.gov") is True

    def test_prose(self) -> None:
        assert is_contact_like("this program supports broadband deployment in rural areas") is False
        assert is_contact_like("Jane Doe " * 20) is False


class TestDescriptionCleaning:
    def test_prose_uses_description_template(self, make_cleaner) -> None:
        cleaner = make_cleaner(lambda instruction, text: "Cleaned description.")
        result = cleaner.clean(LONG_DESCRIPTION)
        assert result.description == "Cleaned description."
        instruction, text = cleaner.calls[0]
        assert instruction == DESCRIPTION_INSTRUCTION
        assert "<p>" not in text

    def test_short_text_uses_short_template_and_strips_prefix(self, make_cleaner) -> None:
        cleaner = make_cleaner(lambda instruction, text: "name: Jane Doe")
        result = cleaner.clean("jane doe")
        assert cleaner.calls[0][0] == SHORT_TEXT_INSTRUCTION
        assert result.description == "Jane Doe"

    def test_long_description_truncated(self, make_cleaner) -> None:
        cleaner = make_cleaner(lambda instruction, text: "ok", max_description_length=50)
        cleaner.clean("word " * 100)
        sent = cleaner.calls[0][1]
        assert len(sent) == 53
        assert sent.endswith("...")

    def test_retries_with_exponential_backoff(self, make_cleaner) -> None:
        """Two failures then success: backoff doubles from the initial delay."""
        attempts = {"n": 0}

        def flaky(instruction: str, text: str) -> str:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise ProviderError("503")
            return "Recovered."

        cleaner = make_cleaner(flaky, initial_backoff=2.0, max_retries=3)
        result = cleaner.clean(LONG_DESCRIPTION)
        assert result.description == "Recovered."
        assert cleaner.backoff_sleeps == [2.0, 4.0]

    def test_exhausted_retries_fall_back_to_passthrough(self, make_cleaner) -> None:
        def down(instruction: str, text: str) -> str:
            raise ProviderError("500")

        cleaner = make_cleaner(down, max_retries=2)
        result = cleaner.clean(LONG_DESCRIPTION)
        assert result.description.startswith("This program supports rural broadband")
        assert len(cleaner.calls) == 3
        assert cleaner.backoff_sleeps == [2.0, 4.0]

    def test_no_api_key_behaves_like_passthrough(self, make_cleaner) -> None:
        cleaner = make_cleaner(lambda i, t: "unused", api_key=None)
        result = cleaner.clean(LONG_DESCRIPTION, "Jane Doe<br/>jane@agency.gov")
        assert cleaner.calls == []
        assert result.description.startswith("This program supports")
        assert result.contact.email == "jane@agency.gov"
        assert result.contact.name_source == "provided"


class TestContactCleaning:
    def test_provider_contact_with_provenance(self, make_cleaner) -> None:
        def respond(instruction: str, text: str) -> str:
            if instruction == CONTACT_PARSER_INSTRUCTION:
                return "name: Jane Doe (provided)\nemail: jane@agency.gov (provided)\nphone: 2025550147 (given-valid)"
            return "Description."

        cleaner = make_cleaner(respond)
        result = cleaner.clean(LONG_DESCRIPTION, "MS. JANE DOE<br/>JANE@AGENCY.GOV<br/>2025550147")
        contact = result.contact
        assert contact.name == "Jane Doe"
        assert contact.name_source == "provided"
        assert contact.email == "jane@agency.gov"
        assert contact.phone == "202-555-0147"
        assert contact.phone_valid is True

    def test_name_inferred_from_email(self, make_cleaner) -> None:
        """With no name anywhere, the name is inferred from the email and tagged."""

        def respond(instruction: str, text: str) -> str:
            if instruction == CONTACT_PARSER_INSTRUCTION:
                return "name: not provided\nemail: john.smith@agency.gov (provided)\nphone: not provided"
            return "Description."

        cleaner = make_cleaner(respond)
        result = cleaner.clean(LONG_DESCRIPTION, "john.smith@agency.gov")
        assert result.contact.name == "John Smith"
        assert result.contact.name_source == "inferred"

    def test_contact_failure_falls_back_per_field(self, make_cleaner) -> None:
        """A failed contact call keeps the provider description and uses pattern extraction."""

        def respond(instruction: str, text: str) -> str:
            if instruction == CONTACT_PARSER_INSTRUCTION:
                raise ProviderError("bad gateway")
            return "Description."

        cleaner = make_cleaner(respond, max_retries=0)
        result = cleaner.clean(LONG_DESCRIPTION, "Jane Doe<br/>jane@agency.gov<br/>202-555-0147")
        assert result.description == "Description."
        assert result.contact.name == "Jane Doe"
        assert result.contact.phone == "202-555-0147"


def _gemini(handler) -> GeminiTextCleaner:
    clock = FakeClock()
    return GeminiTextCleaner(
        "gemini-key",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        rate_limiter=RateLimiter(0.0, 100, 1000, clock=clock, sleep=clock.sleep),
        max_retries=0,
        sleep=lambda s: None,
    )


class TestGemini:
    def test_request_and_response(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = {"candidates": [{"content": {"parts": [{"text": "Clean."}]}}]}
            return httpx.Response(200, json=body)

        cleaner = _gemini(handler)
        try:
            assert cleaner._complete("instr", "text", 64) == "Clean."
        finally:
            cleaner.close()
        request = seen[0]
        assert request.url.path.endswith("/gemini-2.0-flash-lite:generateContent")
        assert request.headers["x-goog-api-key"] == "gemini-key"
        payload = json.loads(request.content)
        assert payload["contents"][0]["parts"] == [{"text": "instr"}, {"text": "text"}]
        assert payload["generationConfig"]["maxOutputTokens"] == 64

    def test_error_status_raises(self) -> None:
        cleaner = _gemini(lambda request: httpx.Response(429, text="quota"))
        try:
            with pytest.raises(ProviderError):
                cleaner._complete("instr", "text", 64)
        finally:
            cleaner.close()

    def test_malformed_response_raises(self) -> None:
        cleaner = _gemini(lambda request: httpx.Response(200, json={"candidates": []}))
        try:
            with pytest.raises(ProviderError):
                cleaner._complete("instr", "text", 64)
        finally:
            cleaner.close()

    def test_failure_degrades_in_clean(self) -> None:
        cleaner = _gemini(lambda request: httpx.Response(500))
        try:
            result = cleaner.clean(LONG_DESCRIPTION)
        finally:
            cleaner.close()
        assert result.description.startswith("This program supports")


class TestOpenRouter:
    def test_chat_completion(self) -> None:
        client = MagicMock()
        client.chat.completions.create.return_value.choices = [MagicMock(message=MagicMock(content="Clean."))]
        cleaner = OpenRouterTextCleaner("or-key", client=client)
        try:
            assert cleaner._complete("instr", "text", 32) == "Clean."
        finally:
            cleaner.close()
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "mistralai/mistral-7b-instruct"
        assert kwargs["messages"][0] == {"role": "system", "content": "instr"}
        assert kwargs["max_tokens"] == 32

    def test_empty_choices_raise(self) -> None:
        client = MagicMock()
        client.chat.completions.create.return_value.choices = []
        cleaner = OpenRouterTextCleaner("or-key", client=client)
        try:
            with pytest.raises(ProviderError):
                cleaner._complete("instr", "text", 32)
        finally:
            cleaner.close()
