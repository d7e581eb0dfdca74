"""Fixtures for pipeline tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from searchbuild.config.models import IndexConfig, SearchBuildConfig, StoreConfig

from pipeline_fakes import Harness, fake_type


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(
        base=tmp_path,
        types=[fake_type("A"), fake_type("B"), fake_type("C")],
        records={"A": [1, 2], "B": [3], "C": []},
    )


@pytest.fixture
def fake_config(tmp_path: Path) -> SearchBuildConfig:
    return SearchBuildConfig(
        store=StoreConfig(url="sqlite://"),
        index=IndexConfig(index_dir=str(tmp_path)),
    )
