import os
from collections.abc import Callable, Generator
from itertools import count
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

os.environ["DATABASE_URL"] = "sqlite:///./test_diaperbank.db"

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from diaperbank.database import Base, SessionLocal, engine  # noqa: E402
from diaperbank.main import app  # noqa: E402
from diaperbank.models import Item, LineItem, LineItemSource, Organization, StorageLocation  # noqa: E402
from diaperbank.seed import run_seed  # noqa: E402

_names = count(1)


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    run_seed()


@pytest.fixture
def db() -> Generator[Session, None, None]:
    with SessionLocal() as session:
        yield session


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def organization(db: Session) -> Organization:
    return db.scalar(select(Organization).order_by(Organization.id.asc()))


@pytest.fixture
def storage_location(db: Session, organization: Organization) -> StorageLocation:
    return db.scalar(
        select(StorageLocation)
        .where(StorageLocation.organization_id == organization.id)
        .order_by(StorageLocation.id.asc())
    )


@pytest.fixture
def make_item(db: Session, organization: Organization) -> Callable[..., Item]:
    def _make(**overrides: object) -> Item:
        fields: dict[str, object] = {
            "name": f"Test Item {next(_names)}",
            "partner_key": "toddler_4",
            "organization_id": organization.id,
        }
        fields.update(overrides)
        item = Item(**fields)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _make


@pytest.fixture
def add_line_item(db: Session) -> Callable[..., LineItem]:
    def _add(item: Item, source: LineItemSource = LineItemSource.PURCHASE, quantity: int = 10, **extra: object) -> LineItem:
        line_item = LineItem(item_id=item.id, itemizable_type=source, quantity=quantity, **extra)
        db.add(line_item)
        db.commit()
        return line_item

    return _add
