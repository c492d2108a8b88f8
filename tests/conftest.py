# tests/conftest.py
"""Pytest configuration and shared fixtures."""

import logging
import os

import pytest

from ace_playbook.core.schema import Bullet, Playbook
from ace_playbook.core.storage.kv_store import InMemoryKeyValueBackend
from ace_playbook.core.store import PlaybookStore, make_empty_playbook


@pytest.fixture(autouse=True)
def clean_ace_env(monkeypatch):
    """Keep the developer's ACE_* / MCP_* settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("ACE_") or name.startswith("MCP_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backend():
    return InMemoryKeyValueBackend()


@pytest.fixture
def store(backend):
    return PlaybookStore(backend=backend)


@pytest.fixture
def playbook() -> Playbook:
    return make_empty_playbook("w1")


def _add_bullet(
    playbook: Playbook,
    section: str,
    bullet_id: str,
    content: str,
    embedding: list[float] | None = None,
    updated_at: str = "2025-01-01T00:00:00.000000+00:00",
) -> Bullet:
    """Append a bullet directly, bypassing the curator path."""
    bullet = Bullet(
        id=bullet_id,
        content=content,
        embedding=embedding,
        created_at=updated_at,
        updated_at=updated_at,
    )
    playbook.sections[section].bullets.append(bullet)
    return bullet


@pytest.fixture
def restore_logging():
    """setup_logging() replaces root handlers; put the originals back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def add_bullet():
    return _add_bullet
