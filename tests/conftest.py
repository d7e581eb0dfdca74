"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides a seeded SQLite store plus run configs pointing at it.
"""

import sys
from collections.abc import Iterator
from pathlib import Path

# Insert local src directory at the beginning of sys.path
# This ensures that the local searchbuild package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of searchbuild modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("searchbuild"):
        del sys.modules[module_name]

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

import shop_models  # noqa: E402
from searchbuild.config.models import (  # noqa: E402
    IndexConfig,
    SearchBuildConfig,
    StoreConfig,
)
from searchbuild.core.logging import clear_run_id  # noqa: E402


def seed_shop(url: str) -> None:
    """Create the shop tables and fill them with a small, known data set.

    3 customers (Ada with 2 orders, Grace with 1, Linus with none),
    2 products, 2 audit log rows.
    """
    engine = create_engine(url)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        ada = shop_models.Customer(id=1, name="Ada Lovelace", email="ada@example.com")
        grace = shop_models.Customer(id=2, name="Grace Hopper", email="grace@example.com")
        linus = shop_models.Customer(id=3, name="Linus Torvalds", email=None)
        session.add_all([ada, grace, linus])
        session.add_all(
            [
                shop_models.Order(id=10, item="difference engine", customer_id=1),
                shop_models.Order(id=11, item="punch cards", customer_id=1),
                shop_models.Order(id=12, item="compiler", customer_id=2),
                shop_models.Product(id=100, name="Analytical engine", sku="AE-1"),
                shop_models.Product(id=101, name="Relay", sku="RL-9"),
                shop_models.AuditLog(id=1, message="seeded"),
                shop_models.AuditLog(id=2, message="reseeded"),
            ]
        )
        session.commit()
    engine.dispose()


@pytest.fixture(autouse=True)
def _reset_run_id() -> Iterator[None]:
    yield
    clear_run_id()


@pytest.fixture
def shop_url(tmp_path: Path) -> str:
    """SQLite URL of a freshly seeded shop database."""
    url = f"sqlite:///{tmp_path / 'shop.db'}"
    seed_shop(url)
    return url


@pytest.fixture
def index_dir(tmp_path: Path) -> Path:
    return tmp_path / "search-index"


@pytest.fixture
def run_config(shop_url: str, index_dir: Path) -> SearchBuildConfig:
    """Config for a filesystem run against the seeded shop."""
    return SearchBuildConfig(
        store=StoreConfig(url=shop_url),
        index=IndexConfig(index_dir=str(index_dir)),
    )
