from __future__ import annotations

import logging

from sqlalchemy import delete

from diaperbank.database import Base, SessionLocal, engine
from diaperbank.models import (
    BarcodeItem,
    BaseItem,
    InventoryItem,
    Item,
    ItemCategory,
    Kit,
    LineItem,
    Organization,
    StorageLocation,
)

logger = logging.getLogger(__name__)

DEMO_ORGANIZATION = "Pawnee Diaper Bank"

BASE_ITEMS = [
    {"partner_key": "toddler_4", "name": "Children Size 4", "category": "Diapers - Childrens", "size": "4"},
    {"partner_key": "toddler_5", "name": "Children Size 5", "category": "Diapers - Childrens", "size": "5"},
    {"partner_key": "adult_l", "name": "Adult Briefs (Large)", "category": "Diapers - Adult", "size": "L"},
    {"partner_key": "cloth_adult", "name": "Cloth Diapers (Adult)", "category": "Diapers - Cloth (Adult)", "size": None},
    {"partner_key": "cloth_kids", "name": "Cloth Diapers (Kids)", "category": "Diapers - Cloth (Kids)", "size": None},
    {"partner_key": "wipes", "name": "Wipes (Baby)", "category": "Wipes - Childrens", "size": None},
    {"partner_key": "other", "name": "Other", "category": "Miscellaneous", "size": None},
]

STORAGE_LOCATIONS = [
    {"name": "Main Warehouse", "address": "1 Pawnee Way"},
    {"name": "Overflow Shed", "address": "22 Eagleton Rd"},
]


def run_seed() -> None:
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        db.execute(delete(BarcodeItem))
        db.execute(delete(InventoryItem))
        db.execute(delete(LineItem))
        db.execute(delete(Item))
        db.execute(delete(Kit))
        db.execute(delete(ItemCategory))
        db.execute(delete(StorageLocation))
        db.execute(delete(BaseItem))
        db.execute(delete(Organization))
        db.flush()

        organization = Organization(name=DEMO_ORGANIZATION)
        db.add(organization)
        db.add_all(BaseItem(**row) for row in BASE_ITEMS)
        db.flush()

        db.add_all(StorageLocation(organization_id=organization.id, **row) for row in STORAGE_LOCATIONS)
        db.add(ItemCategory(name="Diapers", organization_id=organization.id))
        db.commit()

    logger.info("Seeded organization %r with %s base items", DEMO_ORGANIZATION, len(BASE_ITEMS))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed()
