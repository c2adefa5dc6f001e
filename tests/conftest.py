"""Pytest configuration and fixtures for AppGraph tests."""

import shutil
from pathlib import Path
from typing import Callable, Dict, List, Union

import pytest

from appgraph import config


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the user config at a throwaway directory for every test.

    Keeps a developer's real ``~/.appgraph/config.toml`` and API key out of
    the tests, so enrichment never talks to a real provider.
    """
    home = tmp_path_factory.mktemp("appgraph_home")
    monkeypatch.setattr(config, "BASE_DIR", home)
    monkeypatch.setattr(config, "CONFIG_FILE", home / "config.toml")
    monkeypatch.delenv(config.API_KEY_ENV, raising=False)


class FakeLLMClient:
    """Scripted ``complete()`` client.

    Each call pops the next scripted item; exceptions are raised instead of
    returned. Prompts are recorded for assertions.
    """

    def __init__(self, responses: List[Union[str, Exception]]):
        self.responses = list(responses)
        self.prompts: List[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        item = self.responses.pop(0) if self.responses else '{"apiCalls": []}'
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_llm() -> Callable[..., FakeLLMClient]:
    return lambda *responses: FakeLLMClient(list(responses))


@pytest.fixture
def make_workspace(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative_path: source}`` files under a fresh workspace root."""
    root = tmp_path / "workspace"

    def _make(files: Dict[str, str]) -> Path:
        for rel_path, source in files.items():
            target = root / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(source, encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _make


@pytest.fixture
def sample_app_path() -> Path:
    """Get path to the sample web app."""
    return Path(__file__).parent / "fixtures" / "sample_app"


@pytest.fixture
def sample_app_copy(tmp_path: Path, sample_app_path: Path) -> Path:
    """Writable copy of the sample app (the CLI writes a snapshot into it)."""
    target = tmp_path / "sample_app"
    shutil.copytree(sample_app_path, target)
    return target


@pytest.fixture
def button_source() -> str:
    return "export function Button() { return <button>Click</button>; }\n"


@pytest.fixture
def page_source() -> str:
    return """import { Button } from './Button';

export default function Page() {
  return (
    <section>
      <Button />
    </section>
  );
}
"""


@pytest.fixture
def user_list_source() -> str:
    return """import { useEffect, useState } from 'react';

export function UserList() {
  const [users, setUsers] = useState([]);
  useEffect(() => {
    fetch('/api/users').then((r) => r.json()).then(setUsers);
  }, []);
  return <ul className="users">{users.length}</ul>;
}
"""


@pytest.fixture
def users_route_source() -> str:
    return """export async function GET() {
  return Response.json([]);
}
"""
