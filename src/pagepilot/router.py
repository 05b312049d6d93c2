"""
PagePilot - LLM Router

OpenAI-compatible chat-completions client with provider fallback.

Supports: Gemini (OpenAI-compatible endpoint), OpenAI, DeepSeek, Ollama (local)
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum

import httpx
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger("pagepilot.router")


# ═══════════════════════════════════════════════════════════════════════════
# Security Helper
# ═══════════════════════════════════════════════════════════════════════════


def redact_api_keys(text: str) -> str:
    """Redact API keys from error messages."""
    patterns = [
        (r'sk-[a-zA-Z0-9]{20,}', 'sk-***REDACTED***'),
        (r'AIza[0-9A-Za-z_-]{30,}', 'AIza***REDACTED***'),
        (r'Bearer\s+[a-zA-Z0-9_.-]+', 'Bearer ***REDACTED***'),
        (r'([?&]key=)[^&\s]+', r'\1***REDACTED***'),
    ]
    for pattern, replacement in patterns:
        text = re.sub(pattern, replacement, text)
    return text


# ═══════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════


class Provider(str, Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"
    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    LOCAL = "local"  # Ollama


@dataclass
class ToolCall:
    """One capability invocation requested by the model."""
    id: str
    name: str
    arguments: dict = field(default_factory=dict)
    arguments_error: str | None = None  # Set when the model sent malformed JSON


@dataclass
class LLMResponse:
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0


# ═══════════════════════════════════════════════════════════════════════════
# Provider Configs
# ═══════════════════════════════════════════════════════════════════════════


PROVIDERS = {
    Provider.GEMINI: {
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai",
        "model": "gemini-2.5-flash",
        "api_key_env": "GEMINI_API_KEY",
    },
    Provider.OPENAI: {
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-4o-mini",
        "api_key_env": "OPENAI_API_KEY",
    },
    Provider.DEEPSEEK: {
        "base_url": "https://api.deepseek.com/v1",
        "model": "deepseek-chat",
        "api_key_env": "DEEPSEEK_API_KEY",
    },
    Provider.LOCAL: {
        "base_url": "http://localhost:11434/v1",
        "model": "qwen2.5vl:7b",
        "api_key_env": "",
    },
}


def parse_tool_call(raw: dict) -> ToolCall:
    """Build a ToolCall from an OpenAI `tool_calls[]` entry."""
    function = raw.get("function") or {}
    name = function.get("name", "")
    raw_args = function.get("arguments")
    call_id = raw.get("id") or f"call_{name}"

    if raw_args is None or raw_args == "":
        return ToolCall(id=call_id, name=name, arguments={})
    if isinstance(raw_args, dict):
        return ToolCall(id=call_id, name=name, arguments=raw_args)

    try:
        parsed = json.loads(raw_args)
    except (TypeError, json.JSONDecodeError) as e:
        logger.warning(f"Malformed tool arguments for {name}: {raw_args!r}")
        return ToolCall(id=call_id, name=name, arguments_error=f"arguments are not valid JSON ({e})")
    if not isinstance(parsed, dict):
        return ToolCall(id=call_id, name=name, arguments_error="arguments must be a JSON object")
    return ToolCall(id=call_id, name=name, arguments=parsed)


# ═══════════════════════════════════════════════════════════════════════════
# Router
# ═══════════════════════════════════════════════════════════════════════════


class LLMRouter:
    """
    OpenAI-compatible LLM client with fallback.

    Usage:
        router = LLMRouter(primary=Provider.GEMINI)
        response = await router.complete(messages, tools, system)
    """

    def __init__(
        self,
        primary: Provider = Provider.GEMINI,
        fallback: Provider | None = None,
        timeout: float = 120.0,
        model: str | None = None,
    ):
        self.primary = primary
        # Only use fallback if API key is available
        if fallback and not self._get_api_key(fallback):
            logger.warning(f"No API key for {fallback.value}, disabling fallback")
            self.fallback = None
        else:
            self.fallback = fallback
        self.timeout = timeout
        self.model = model  # Overrides the primary provider's default model
        self._client: httpx.AsyncClient | None = None
        self.current_provider: Provider = primary

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _model_for(self, provider: Provider) -> str:
        if self.model and provider == self.primary:
            return self.model
        return PROVIDERS[provider]["model"]

    def _get_api_key(self, provider: Provider) -> str | None:
        env_var = PROVIDERS[provider]["api_key_env"]
        if not env_var:
            return None
        return os.environ.get(env_var)

    async def complete(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
        system: str | None = None,
        provider_override: Provider | None = None,
    ) -> LLMResponse:
        """
        Ask the model for the next assistant turn.

        Args:
            messages: Conversation messages (OpenAI format)
            tools: Tool schemas (OpenAI format)
            system: System prompt
            provider_override: Force a specific provider
        """
        selected = provider_override or self.primary
        providers = [selected]
        if self.fallback and self.fallback != selected:
            providers.append(self.fallback)

        for provider in providers:
            self.current_provider = provider
            try:
                return await self._complete_openai(provider, messages, tools, system)
            except (httpx.HTTPError, ValueError) as e:
                error_msg = redact_api_keys(str(e))
                logger.error(f"Completion failed with {provider.value}: {error_msg}", extra={"provider": provider.value})
                if provider == providers[-1]:
                    raise RuntimeError(f"All providers failed. Last error: {error_msg}") from e

        raise RuntimeError("No provider available")

    async def _complete_openai(
        self,
        provider: Provider,
        messages: list[dict],
        tools: list[dict] | None,
        system: str | None,
    ) -> LLMResponse:
        client = await self._get_client()
        config = PROVIDERS[provider]

        headers = {"Content-Type": "application/json"}
        api_key = self._get_api_key(provider)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        all_messages = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        payload = {
            "model": self._model_for(provider),
            "messages": all_messages,
            "max_tokens": 4096,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"

        logger.debug(
            f"Request to {provider.value}: {len(all_messages)} messages, {len(tools) if tools else 0} tools",
            extra={"provider": provider.value},
        )

        response = await client.post(f"{config['base_url']}/chat/completions", headers=headers, json=payload)
        response.raise_for_status()
        return self._parse_response(response.json())

    @staticmethod
    def _parse_response(data: dict) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            raise httpx.DecodingError("Response contained no choices")
        message = choices[0].get("message") or {}
        usage = data.get("usage") or {}
        return LLMResponse(
            content=message.get("content") or None,
            tool_calls=[parse_tool_call(tc) for tc in message.get("tool_calls") or []],
            model=data.get("model"),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )
