"""Configuration manager for AppGraph using TOML files."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Union

import toml

from . import config

logger = logging.getLogger(__name__)


# Default configurations for each provider
DEFAULT_CONFIGS: Dict[str, Dict[str, str]] = {
    "gemini": {
        "provider": "gemini",
        "model": "gemini-2.0-flash",
        "api_key": "",
    },
    "openai": {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "api_key": "",
        "endpoint": "https://api.openai.com/v1/chat/completions",
    },
    "anthropic": {
        "provider": "anthropic",
        "model": "claude-3-5-sonnet-20241022",
        "api_key": "",
    },
    "groq": {
        "provider": "groq",
        "model": "llama-3.3-70b-versatile",
        "api_key": "",
    },
    "ollama": {
        "provider": "ollama",
        "model": "qwen2.5-coder:7b",
        "endpoint": "http://127.0.0.1:11434/api/generate",
    },
}

DEFAULT_PROVIDER = "gemini"

DEFAULT_ANALYSIS: Dict[str, Any] = {
    "include": config.DEFAULT_INCLUDE,
    "exclude": config.DEFAULT_EXCLUDE,
    "enable_llm": False,
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config.CONFIG_FILE, exc)
        return {}


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return the named table, or an empty dict when it is missing or not a table."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        logger.warning("Ignoring [%s] in %s: expected a table, got %s", name, config.CONFIG_FILE, type(section).__name__)
        return {}
    return section


def load_config() -> Dict[str, Any]:
    """Load the ``[llm]`` section.

    Falls back to the default provider's settings when the file or section is
    missing. ``APPGRAPH_LLM_API_KEY`` overrides any stored key.
    """
    llm = _section(load_full_config(), "llm") or get_provider_config(DEFAULT_PROVIDER)
    env_key = os.environ.get(config.API_KEY_ENV)
    if env_key:
        llm = {**llm, "api_key": env_key}
    return llm


def load_analysis_config() -> Dict[str, Any]:
    """Load the ``[analysis]`` section merged over the defaults."""
    section = _section(load_full_config(), "analysis")
    merged = dict(DEFAULT_ANALYSIS)
    merged.update({k: v for k, v in section.items() if k in DEFAULT_ANALYSIS})
    return merged


def _save_full_config(data: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    config.ensure_base_dirs()
    try:
        with open(config.CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", config.CONFIG_FILE, exc)
        return False


def save_config(provider: str, model: str, api_key: str = "", endpoint: str = "") -> bool:
    """Save LLM configuration, preserving the other sections.

    Returns:
        True if saved successfully, False otherwise
    """
    data = load_full_config()
    data["llm"] = {"provider": provider, "model": model}
    if api_key:
        data["llm"]["api_key"] = api_key
    if endpoint:
        data["llm"]["endpoint"] = endpoint
    return _save_full_config(data)


def save_analysis_config(
    include: Union[str, List[str], None] = None,
    exclude: Union[str, List[str], None] = None,
    enable_llm: Union[bool, None] = None,
) -> bool:
    """Update the ``[analysis]`` section with the given non-None values."""
    data = load_full_config()
    section = _section(data, "analysis")
    data["analysis"] = section
    if include is not None:
        section["include"] = include
    if exclude is not None:
        section["exclude"] = exclude
    if enable_llm is not None:
        section["enable_llm"] = enable_llm
    return _save_full_config(data)


def get_provider_config(provider: str) -> Dict[str, str]:
    """Get default configuration for a specific provider."""
    return DEFAULT_CONFIGS.get(provider, DEFAULT_CONFIGS[DEFAULT_PROVIDER]).copy()
