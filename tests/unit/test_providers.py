"""Unit tests for the translation providers and the provider registry."""
import os
from unittest.mock import patch

import httpx
import pytest

from localizer.errors import ConfigError
from localizer.providers import PROVIDERS, load_translation_provider, validate_provider_name
from localizer.providers.anthropic import AnthropicProvider
from localizer.providers.base import get_header, parse_retry_after_seconds
from localizer.providers.google import GoogleProvider
from localizer.providers.openai import OpenAIProvider

PROMPT = ["You are a translator.", "App context", "Translate: Hello"]


class TestHelpers:

    def test_parse_retry_after(self):
        assert parse_retry_after_seconds("12") == 12.0
        assert parse_retry_after_seconds("500ms") == 0.5
        assert parse_retry_after_seconds(None) is None
        assert parse_retry_after_seconds("soon") is None

    def test_get_header_is_case_insensitive(self):
        assert get_header({"Retry-After": "3"}, "retry-after") == "3"
        assert get_header(httpx.Headers({"Retry-After": "3"}), "retry-after") == "3"
        assert get_header({}, "retry-after") is None


class TestAnthropicProvider:

    def test_request_details(self):
        details = AnthropicProvider().get_translation_request_details("claude-x", PROMPT, "secret")
        assert details.url == "https://api.anthropic.com/v1/messages"
        assert details.params["model"] == "claude-x"
        assert [m["role"] for m in details.params["messages"]] == ["user"] * 3
        assert details.headers["x-api-key"] == "secret"
        assert details.headers["anthropic-version"] == "2023-06-01"

    def test_get_result(self):
        assert AnthropicProvider().get_result({"content": [{"type": "text", "text": "  Bonjour \n"}]}) == "Bonjour"
        assert AnthropicProvider().get_result({"content": []}) == ""

    def test_sleep_interval_respects_should_retry(self):
        provider = AnthropicProvider()
        assert provider.get_sleep_interval({"x-should-retry": "true", "retry-after": "2"}) == 2200
        assert provider.get_sleep_interval({"x-should-retry": "false", "retry-after": "2"}) == 0
        assert provider.get_sleep_interval({"retry-after": "2"}) == 0

    @pytest.mark.asyncio
    async def test_list_models_paginates(self):
        pages = [
            {"data": [{"id": "m1"}], "has_more": True, "last_id": "m1"},
            {"data": [{"id": "m2"}], "has_more": False, "last_id": "m2"},
        ]
        seen_params = []

        def handler(request):
            seen_params.append(dict(request.url.params))
            assert request.headers["x-api-key"] == "secret"
            return httpx.Response(200, json=pages.pop(0))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            models = await AnthropicProvider().list_models("secret", client)

        assert [m["id"] for m in models] == ["m1", "m2"]
        assert seen_params == [{}, {"after_id": "m1"}]


class TestGoogleProvider:

    def test_request_details(self):
        details = GoogleProvider().get_translation_request_details("gemini-x", PROMPT, "secret")
        assert details.url.endswith("/v1beta/models/gemini-x:generateContent?key=secret")
        assert details.params["contents"][2] == {"role": "user", "parts": [{"text": "Translate: Hello"}]}

    def test_get_result(self):
        body = {"candidates": [{"content": {"parts": [{"text": " Hallo "}]}}]}
        assert GoogleProvider().get_result(body) == "Hallo"
        assert GoogleProvider().get_result({"candidates": []}) == ""

    def test_sleep_interval(self):
        assert GoogleProvider().get_sleep_interval({"Retry-After": "1"}) == 1200
        assert GoogleProvider().get_sleep_interval({}) == 0

    @pytest.mark.asyncio
    async def test_list_models_follows_page_token(self):
        pages = [
            {"models": [{"name": "models/a"}], "nextPageToken": "next"},
            {"models": [{"name": "models/b"}]},
        ]

        def handler(request):
            assert request.url.params["key"] == "secret"
            return httpx.Response(200, json=pages.pop(0))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            models = await GoogleProvider().list_models("secret", client)

        assert [m["name"] for m in models] == ["models/a", "models/b"]


class TestOpenAIProvider:

    def test_request_details_roles(self):
        details = OpenAIProvider().get_translation_request_details("gpt-x", PROMPT, "secret")
        assert details.url == "https://api.openai.com/v1/chat/completions"
        assert [m["role"] for m in details.params["messages"]] == ["system", "system", "user"]
        assert details.headers["Authorization"] == "Bearer secret"

    def test_get_result(self):
        assert OpenAIProvider().get_result({"choices": [{"message": {"content": " Hola "}}]}) == "Hola"
        assert OpenAIProvider().get_result({"choices": [{"message": {"content": None}}]}) == ""

    def test_sleep_interval_prefers_milliseconds_header(self):
        provider = OpenAIProvider()
        assert provider.get_sleep_interval({"retry-after-ms": "800", "retry-after": "5"}) == 1000
        assert provider.get_sleep_interval({"retry-after": "5"}) == 5200
        assert provider.get_sleep_interval({}) == 0

    @pytest.mark.asyncio
    async def test_list_models_through_sdk(self):
        def handler(request):
            assert request.url.path.endswith("/models")
            return httpx.Response(200, json={
                "object": "list",
                "data": [{"id": "gpt-4o", "object": "model", "created": 1, "owned_by": "openai"}],
            })

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            models = await OpenAIProvider().list_models("secret", client)

        assert [m["id"] for m in models] == ["gpt-4o"]


class TestRegistry:

    def test_known_providers(self):
        assert set(PROVIDERS) == {"anthropic", "google", "openai"}

    def test_validate_is_case_insensitive(self, messages):
        assert validate_provider_name("OpenAI", messages) == "openai"

    def test_unknown_provider(self, messages):
        with pytest.raises(ConfigError, match="Supported providers: anthropic, google, openai"):
            validate_provider_name("acme", messages)

    def test_missing_provider(self, messages):
        with pytest.raises(ConfigError, match="No provider specified"):
            validate_provider_name(None, messages)

    def test_missing_api_key(self, messages):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="GOOGLE_API_KEY"):
                load_translation_provider("google", messages)

    def test_loads_provider_and_key(self, messages):
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "k"}, clear=True):
            provider, api_key = load_translation_provider("anthropic", messages)
        assert isinstance(provider, AnthropicProvider)
        assert api_key == "k"
