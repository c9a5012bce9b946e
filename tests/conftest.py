"""
Shared pytest fixtures for lomad tests.

Provides an in-memory GitHub with the LOOT masterlist repositories and keeps
the exception log out of the real home directory.
"""

from typing import Generator

import pytest

from lomad.utils.exception_logger import ExceptionLogger
from tests.infrastructure.in_memory_git_store import InMemoryGitStore

MASTERLIST = """\
prelude:
  - &updateAvailable
    type: say
    content: 'A newer version of LOOT is available.'
    condition: 'version("LOOT", "0.14.0", <)'

bash_tags:
  - C.Climate

plugins:
  - name: 'Unofficial Skyrim Patch.esp'
    url: [ 'https://www.nexusmods.com/skyrim/mods/19' ]
    msg:
      - type: say
        content: 'See https://loot.github.io/docs for help.'
"""


@pytest.fixture
def masterlist_text() -> str:
    return MASTERLIST


@pytest.fixture
def git_store() -> InMemoryGitStore:
    """In-memory GitHub hosting loot/skyrim and loot/oblivion."""
    store = InMemoryGitStore()
    for name in ("skyrim", "oblivion"):
        store.create_repository(
            name,
            {
                "masterlist.yaml": MASTERLIST,
                "README.md": f"# {name} masterlist\n",
                "docs/contributing.md": "Read the guidelines first.\n",
            },
        )
    return store


@pytest.fixture(autouse=True)
def isolated_exception_log(tmp_path, monkeypatch) -> Generator[None, None, None]:
    """Point the exception log at a temporary home and reset its singleton."""
    monkeypatch.setenv("HOME", str(tmp_path))
    ExceptionLogger._instance = None
    yield
    ExceptionLogger._instance = None
