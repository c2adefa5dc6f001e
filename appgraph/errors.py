"""Exception types raised by AppGraph."""

from __future__ import annotations


class AppGraphError(Exception):
    """Base class for all AppGraph errors."""


class ConfigError(AppGraphError):
    """Raised when a configuration value cannot be used."""


class LLMError(AppGraphError):
    """Raised when a language-model request fails or returns an unusable payload."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
