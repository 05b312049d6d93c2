"""
Tests for LLMRouter — request shape, tool call parsing, fallback.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from pagepilot.router import LLMRouter, Provider, parse_tool_call, redact_api_keys


def _mock_response(data):
    response = MagicMock()
    response.json.return_value = data
    response.raise_for_status.return_value = None
    return response


def _mock_client(*results):
    client = MagicMock()
    client.is_closed = False
    client.post = AsyncMock(side_effect=list(results))
    client.aclose = AsyncMock()
    return client


COMPLETION = {
    "model": "gemini-2.5-flash",
    "choices": [{
        "message": {
            "content": "Opening the page",
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "open_url", "arguments": '{"url": "https://example.com"}'},
            }],
        },
    }],
    "usage": {"prompt_tokens": 120, "completion_tokens": 15},
}


class TestParseToolCall:
    def test_json_string_arguments(self):
        tc = parse_tool_call({"id": "c1", "function": {"name": "scroll", "arguments": '{"direction": "down", "amount": 3}'}})
        assert tc.name == "scroll"
        assert tc.arguments == {"direction": "down", "amount": 3}
        assert tc.arguments_error is None

    def test_empty_arguments(self):
        tc = parse_tool_call({"id": "c1", "function": {"name": "take_screenshot", "arguments": ""}})
        assert tc.arguments == {}

    def test_dict_arguments(self):
        tc = parse_tool_call({"id": "c1", "function": {"name": "find_element", "arguments": {"selector": "#a"}}})
        assert tc.arguments == {"selector": "#a"}

    def test_malformed_json(self):
        tc = parse_tool_call({"id": "c1", "function": {"name": "open_url", "arguments": '{"url": '}})
        assert tc.arguments == {}
        assert "not valid JSON" in tc.arguments_error

    def test_non_object_json(self):
        tc = parse_tool_call({"id": "c1", "function": {"name": "open_url", "arguments": '["https://x.test"]'}})
        assert tc.arguments_error == "arguments must be a JSON object"

    def test_missing_id(self):
        assert parse_tool_call({"function": {"name": "scroll"}}).id == "call_scroll"


class TestComplete:
    @pytest.mark.asyncio
    async def test_request_and_response(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        router = LLMRouter(primary=Provider.GEMINI)
        router._client = _mock_client(_mock_response(COMPLETION))

        tools = [{"type": "function", "function": {"name": "open_url"}}]
        response = await router.complete([{"role": "user", "content": "go"}], tools=tools, system="be careful")

        assert response.content == "Opening the page"
        assert response.tool_calls[0].name == "open_url"
        assert response.tool_calls[0].arguments == {"url": "https://example.com"}
        assert response.input_tokens == 120
        assert response.output_tokens == 15

        url = router._client.post.await_args.args[0]
        kwargs = router._client.post.await_args.kwargs
        assert url == "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["json"]["messages"][0] == {"role": "system", "content": "be careful"}
        assert kwargs["json"]["tools"] == tools
        assert kwargs["json"]["tool_choice"] == "auto"

    @pytest.mark.asyncio
    async def test_text_only_response(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        router = LLMRouter()
        router._client = _mock_client(_mock_response({"choices": [{"message": {"content": "All done."}}]}))
        response = await router.complete([{"role": "user", "content": "go"}])
        assert response.content == "All done."
        assert response.tool_calls == []
        assert "tools" not in router._client.post.await_args.kwargs["json"]

    @pytest.mark.asyncio
    async def test_fallback_on_http_error(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        monkeypatch.setenv("OPENAI_API_KEY", "o-key")
        router = LLMRouter(primary=Provider.GEMINI, fallback=Provider.OPENAI)
        router._client = _mock_client(httpx.ConnectError("connection refused"), _mock_response(COMPLETION))

        response = await router.complete([{"role": "user", "content": "go"}])
        assert response.tool_calls[0].name == "open_url"
        assert router.current_provider == Provider.OPENAI
        assert router._client.post.await_args.args[0] == "https://api.openai.com/v1/chat/completions"

    def test_fallback_disabled_without_key(self, monkeypatch):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        router = LLMRouter(primary=Provider.GEMINI, fallback=Provider.DEEPSEEK)
        assert router.fallback is None

    @pytest.mark.asyncio
    async def test_all_providers_fail(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        router = LLMRouter()
        router._client = _mock_client(httpx.ConnectError("refused: https://x.test/v1?key=AIzaSECRET123"))
        with pytest.raises(RuntimeError, match="All providers failed") as exc:
            await router.complete([{"role": "user", "content": "go"}])
        assert "AIzaSECRET123" not in str(exc.value)

    @pytest.mark.asyncio
    async def test_empty_choices_is_an_error(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        router = LLMRouter()
        router._client = _mock_client(_mock_response({"choices": []}))
        with pytest.raises(RuntimeError, match="no choices"):
            await router.complete([{"role": "user", "content": "go"}])

    @pytest.mark.asyncio
    async def test_close(self):
        router = LLMRouter()
        client = _mock_client()
        router._client = client
        await router.close()
        client.aclose.assert_awaited_once()
        assert router._client is None


class TestRedaction:
    def test_openai_key(self):
        assert "sk-***REDACTED***" in redact_api_keys("bad key sk-abcdefghijklmnopqrstuvwxyz")

    def test_google_key(self):
        text = redact_api_keys("key AIza" + "A" * 35)
        assert "AIza***REDACTED***" in text

    def test_bearer(self):
        assert redact_api_keys("Authorization: Bearer abc.def") == "Authorization: Bearer ***REDACTED***"

    def test_query_key(self):
        assert redact_api_keys("https://x.test/v1?key=secret&alt=json") == "https://x.test/v1?key=***REDACTED***&alt=json"


class TestModelSelection:
    @pytest.mark.asyncio
    async def test_default_gemini_model(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        router = LLMRouter()
        router._client = _mock_client(_mock_response(COMPLETION))
        await router.complete([{"role": "user", "content": "go"}])
        assert router._client.post.await_args.kwargs["json"]["model"] == "gemini-2.5-flash"

    @pytest.mark.asyncio
    async def test_model_override_applies_to_primary_only(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        monkeypatch.setenv("OPENAI_API_KEY", "o-key")
        router = LLMRouter(primary=Provider.GEMINI, fallback=Provider.OPENAI, model="gemini-2.5-pro")
        router._client = _mock_client(httpx.ConnectError("refused"), _mock_response(COMPLETION))

        await router.complete([{"role": "user", "content": "go"}])
        first, second = router._client.post.await_args_list
        assert first.kwargs["json"]["model"] == "gemini-2.5-pro"
        assert second.kwargs["json"]["model"] == "gpt-4o-mini"
