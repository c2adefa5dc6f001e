"""Multi-provider LLM adapter supporting Gemini, OpenAI, Anthropic, Groq and Ollama.

Unlike a chat helper, enrichment needs to know when a request failed, so
every provider raises :class:`~appgraph.errors.LLMError` instead of
returning a placeholder.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

import requests

from .config_manager import DEFAULT_PROVIDER, get_provider_config, load_config
from .errors import LLMError

logger = logging.getLogger(__name__)

TEMPERATURE = 0.3
MAX_OUTPUT_TOKENS = 2048
REQUEST_TIMEOUT = 60


def _post_json(provider: str, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as resp:
            body = resp.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raise LLMError(provider, f"HTTP {exc.code}") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise LLMError(provider, f"request failed: {exc}") from exc
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        raise LLMError(provider, "response was not JSON") from exc
    if isinstance(parsed, dict) and parsed.get("error"):
        error = parsed["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise LLMError(provider, f"API error: {message}")
    return parsed


class LLMProvider:
    """Base class for LLM providers."""

    name = "base"

    def generate(self, prompt: str) -> str:
        """Generate a response from the LLM or raise ``LLMError``."""
        raise NotImplementedError


class GeminiProvider(LLMProvider):
    """Google Gemini API provider."""

    name = "gemini"

    def __init__(self, model: str, api_key: str):
        self.model = model
        self.api_key = api_key
        self.endpoint = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def generate(self, prompt: str) -> str:
        parsed = _post_json(
            self.name,
            f"{self.endpoint}?key={self.api_key}",
            {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": TEMPERATURE,
                    "maxOutputTokens": MAX_OUTPUT_TOKENS,
                },
            },
            {},
        )
        try:
            return parsed["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(self.name, "unexpected response structure") from exc


class OpenAIProvider(LLMProvider):
    """OpenAI API provider (also works with other OpenAI-compatible APIs)."""

    name = "openai"

    def __init__(self, model: str, api_key: str, endpoint: str = "https://api.openai.com/v1/chat/completions"):
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint

    def generate(self, prompt: str) -> str:
        parsed = _post_json(
            self.name,
            self.endpoint,
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": TEMPERATURE,
                "max_tokens": MAX_OUTPUT_TOKENS,
            },
            {"Authorization": f"Bearer {self.api_key}"},
        )
        try:
            return parsed["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(self.name, "unexpected response structure") from exc


class AnthropicProvider(LLMProvider):
    """Anthropic Claude API provider."""

    name = "anthropic"

    def __init__(self, model: str, api_key: str):
        self.model = model
        self.api_key = api_key
        self.endpoint = "https://api.anthropic.com/v1/messages"

    def generate(self, prompt: str) -> str:
        parsed = _post_json(
            self.name,
            self.endpoint,
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": MAX_OUTPUT_TOKENS,
                "temperature": TEMPERATURE,
            },
            {"x-api-key": self.api_key, "anthropic-version": "2023-06-01"},
        )
        try:
            return parsed["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(self.name, "unexpected response structure") from exc


class GroqProvider(LLMProvider):
    """Groq cloud API provider."""

    name = "groq"

    def __init__(self, model: str, api_key: str):
        self.model = model
        self.api_key = api_key
        self.endpoint = "https://api.groq.com/openai/v1/chat/completions"

    def generate(self, prompt: str) -> str:
        try:
            response = requests.post(
                self.endpoint,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": TEMPERATURE,
                    "max_tokens": MAX_OUTPUT_TOKENS,
                },
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return response.json()["choices"][0]["message"]["content"]
        except requests.RequestException as exc:
            raise LLMError(self.name, f"request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise LLMError(self.name, "unexpected response structure") from exc


class OllamaProvider(LLMProvider):
    """Ollama local LLM provider."""

    name = "ollama"

    def __init__(self, model: str, endpoint: str):
        self.model = model
        self.endpoint = endpoint

    def generate(self, prompt: str) -> str:
        parsed = _post_json(
            self.name,
            self.endpoint,
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": TEMPERATURE},
            },
            {},
        )
        response = parsed.get("response")
        if not isinstance(response, str):
            raise LLMError(self.name, "unexpected response structure")
        return response


# Providers that need an API key before a request can succeed
_KEYED_PROVIDERS = {"gemini", "openai", "anthropic", "groq"}


class LLMClient:
    """Single-prompt completion client used by the enrichment stage."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        self.provider_name = str(provider or DEFAULT_PROVIDER).lower()
        defaults = get_provider_config(self.provider_name)
        self.model = model or defaults.get("model", "")
        self.api_key = api_key or ""
        self.endpoint = endpoint or defaults.get("endpoint", "")
        self.provider = self._create_provider()

    @property
    def is_configured(self) -> bool:
        if self.provider_name in _KEYED_PROVIDERS:
            return bool(self.api_key)
        return bool(self.endpoint)

    def _create_provider(self) -> LLMProvider:
        name = self.provider_name
        if name == "openai":
            return OpenAIProvider(self.model, self.api_key, self.endpoint or "https://api.openai.com/v1/chat/completions")
        if name == "anthropic":
            return AnthropicProvider(self.model, self.api_key)
        if name == "groq":
            return GroqProvider(self.model, self.api_key)
        if name == "ollama":
            return OllamaProvider(self.model, self.endpoint)
        if name != "gemini":
            logger.warning("Unknown LLM provider '%s', using gemini", name)
            self.provider_name = "gemini"
        return GeminiProvider(self.model, self.api_key)

    def complete(self, prompt: str) -> str:
        logger.debug("LLM request via %s/%s (%d chars)", self.provider_name, self.model, len(prompt))
        return self.provider.generate(prompt)


def create_llm_client(settings: Optional[Dict[str, Any]] = None) -> Optional[LLMClient]:
    """Build a client from an ``[llm]`` config section; None when unconfigured."""
    settings = settings if settings is not None else load_config()
    client = LLMClient(
        provider=settings.get("provider"),
        model=settings.get("model"),
        api_key=settings.get("api_key"),
        endpoint=settings.get("endpoint"),
    )
    if not client.is_configured:
        logger.info("LLM provider '%s' has no API key configured", client.provider_name)
        return None
    return client
