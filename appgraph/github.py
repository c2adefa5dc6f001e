"""GitHub permalink support.

Remote and branch are read straight from ``.git/config`` and ``.git/HEAD``
so no ``git`` executable is needed.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Tuple

from .models import GitHubInfo

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"

_ORIGIN_SECTION_RE = re.compile(r'^\[remote\s+"origin"\]\s*$(.*?)(?=^\[|\Z)', re.MULTILINE | re.DOTALL)
_URL_RE = re.compile(r"^\s*url\s*=\s*(\S+)\s*$", re.MULTILINE)
_HTTPS_RE = re.compile(r"github\.com/([^/]+)/([^/\s]+?)(?:\.git)?/?$")
_SSH_RE = re.compile(r"git@github\.com:([^/]+)/([^/\s]+?)(?:\.git)?$")
_HEAD_REF_RE = re.compile(r"^ref:\s*refs/heads/(.+)$")


def parse_remote_url(url: str) -> Optional[Tuple[str, str]]:
    """Return ``(owner, repo)`` for a github.com HTTPS or SSH remote."""
    match = _HTTPS_RE.search(url) or _SSH_RE.search(url)
    if not match:
        return None
    return match.group(1), match.group(2)


def detect_github_info(root: Path) -> Optional[GitHubInfo]:
    git_dir = root / ".git"
    try:
        git_config = (git_dir / "config").read_text(encoding="utf-8")
    except OSError:
        logger.debug("No git config under %s", root)
        return None

    section = _ORIGIN_SECTION_RE.search(git_config)
    url_match = _URL_RE.search(section.group(1)) if section else None
    if not url_match:
        logger.debug("No origin remote configured in %s", git_dir)
        return None
    parsed = parse_remote_url(url_match.group(1))
    if parsed is None:
        logger.info("Origin remote is not a GitHub URL: %s", url_match.group(1))
        return None

    branch = DEFAULT_BRANCH
    try:
        head = (git_dir / "HEAD").read_text(encoding="utf-8").strip()
    except OSError:
        head = ""
    ref = _HEAD_REF_RE.match(head)
    if ref:
        branch = ref.group(1)
    elif head:
        # detached HEAD: pin links to the commit
        branch = head

    owner, repo = parsed
    logger.info("Detected GitHub repo: %s/%s (branch: %s)", owner, repo, branch)
    return GitHubInfo(owner=owner, repo=repo, branch=branch)


def github_link(info: GitHubInfo, file_path: str, start_line: int, end_line: int) -> str:
    if start_line == end_line:
        line_range = f"L{start_line}"
    else:
        line_range = f"L{start_line}-L{end_line}"
    return f"https://github.com/{info.owner}/{info.repo}/blob/{info.branch}/{file_path}#{line_range}"
