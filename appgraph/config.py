"""Paths and analysis defaults for AppGraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("APPGRAPH_HOME", str(Path.home() / ".appgraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Snapshot location, relative to the analysed workspace root
GRAPH_DIR = ".appgraph"
GRAPH_FILE = "graph.json"

DEFAULT_INCLUDE = "**/*.{ts,tsx,js,jsx,vue,svelte}"
DEFAULT_EXCLUDE = (
    "{**/node_modules/**,**/dist/**,**/build/**,**/.next/**,**/coverage/**,"
    "**/*.test.*,**/*.spec.*,**/__tests__/**}"
)

# Single-file component extensions: template and script live in one file
SFC_EXTENSIONS = {".vue", ".svelte"}

LANGUAGE_MAP = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".vue": "vue",
    ".svelte": "svelte",
}

API_KEY_ENV = "APPGRAPH_LLM_API_KEY"


def ensure_base_dirs() -> None:
    """Create the user-level config directory if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
