"""Fixtures for sbuild command tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import structlog
from sqlalchemy import create_engine, text

NOTES_MODULE = '''\
from typing import Optional

from sqlmodel import Field, SQLModel

from searchbuild.markers import searchable


@searchable(fields=("body",))
class CliNote(SQLModel, table=True):
    __tablename__ = "cli_note"

    id: Optional[int] = Field(default=None, primary_key=True)
    body: str


class CliScratch:
    pass
'''


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every command from an empty directory with no SEARCHBUILD__ env vars."""
    for key in list(os.environ):
        if key.upper().startswith("SEARCHBUILD__"):
            monkeypatch.delenv(key)
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop the handlers each command installs on the runner's streams."""
    yield
    for handler in logging.getLogger().handlers:
        handler.close()
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def console() -> Iterator[MagicMock]:
    """The shared Rich console, replaced so status lines can be inspected."""
    with patch("searchbuild.core.progress._console") as mock_console:
        yield mock_console



@pytest.fixture
def notes_dir(tmp_path: Path, shop_url: str) -> Path:
    """Import root holding a one-model mapping module, with its table seeded."""
    root = tmp_path / "notes"
    root.mkdir()
    (root / "cli_notes_models.py").write_text(NOTES_MODULE)

    engine = create_engine(shop_url)
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE IF NOT EXISTS cli_note "
                "(id INTEGER PRIMARY KEY, body VARCHAR NOT NULL)"
            )
        )
        conn.execute(text("INSERT INTO cli_note (id, body) VALUES (1, 'first'), (2, 'second')"))
    engine.dispose()
    return root
