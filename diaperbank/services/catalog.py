from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from diaperbank.errors import ItemValidationError
from diaperbank.models import (
    KIT_PARTNER_KEY,
    BarcodeItem,
    Item,
    ItemCategory,
    Kit,
    LineItem,
    LineItemSource,
    Organization,
)
from diaperbank.schemas import ItemCreate, ItemUpdate, KitComponent

logger = logging.getLogger(__name__)

# NOT NULL columns that ItemUpdate lets through as an explicit null.
REQUIRED_FIELDS = ("name", "partner_key", "on_hand_minimum_quantity", "value_in_cents", "visible_to_partners")


def get_item_or_none(db: Session, item_id: int) -> Item | None:
    return db.get(Item, item_id)


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(Item.id).where(Item.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Item.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def _check_item_category(db: Session, item_category_id: int | None, organization_id: int) -> list[str]:
    if item_category_id is None:
        return []
    category = db.get(ItemCategory, item_category_id)
    if category is None or category.organization_id != organization_id:
        return ["must belong to the item's organization"]
    return []


def _commit_item(db: Session, name: str, exclude_id: int | None = None) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _name_taken(db, name, exclude_id=exclude_id):
            raise ItemValidationError({"name": ["has already been taken"]}) from exc
        raise


def create_item(db: Session, payload: ItemCreate) -> Item:
    errors: dict[str, list[str]] = {}

    if db.get(Organization, payload.organization_id) is None:
        errors.setdefault("organization", []).append("must exist")
    if _name_taken(db, payload.name):
        errors.setdefault("name", []).append("has already been taken")
    category_errors = _check_item_category(db, payload.item_category_id, payload.organization_id)
    if category_errors:
        errors["item_category"] = category_errors

    if errors:
        raise ItemValidationError(errors)

    item = Item(**payload.model_dump())
    db.add(item)
    _commit_item(db, payload.name)
    db.refresh(item)
    logger.info("Created item %s (%r) for organization %s", item.id, item.name, item.organization_id)
    return item


def update_item(db: Session, item: Item, payload: ItemUpdate) -> Item:
    updates = payload.model_dump(exclude_unset=True)
    errors: dict[str, list[str]] = {}

    for field in REQUIRED_FIELDS:
        if field in updates and updates[field] is None:
            errors.setdefault(field, []).append("can't be blank")

    if updates.get("name") and _name_taken(db, updates["name"], exclude_id=item.id):
        errors.setdefault("name", []).append("has already been taken")

    if "item_category_id" in updates:
        category_errors = _check_item_category(db, updates["item_category_id"], item.organization_id)
        if category_errors:
            errors["item_category"] = category_errors

    if errors:
        raise ItemValidationError(errors)

    previous_name = item.name
    for key, value in updates.items():
        setattr(item, key, value)

    if item.name != previous_name:
        propagate_name_to_kit(item)

    db.add(item)
    _commit_item(db, item.name, exclude_id=item.id)
    db.refresh(item)
    return item


def propagate_name_to_kit(item: Item) -> Kit | None:
    kit = item.kit
    if kit is None:
        return None
    kit.name = item.name
    logger.info("Renamed kit %s to %r after item %s was renamed", kit.id, kit.name, item.id)
    return kit


def register_barcode(db: Session, item: Item, value: str, quantity: int = 1) -> BarcodeItem:
    barcode = BarcodeItem(value=value, quantity=quantity, item_id=item.id)
    item.barcode_count = (item.barcode_count or 0) + 1
    db.add(barcode)
    db.add(item)
    db.commit()
    db.refresh(barcode)
    logger.info("Registered barcode %r for item %s", value, item.id)
    return barcode


def create_kit(
    db: Session,
    organization_id: int,
    name: str,
    components: Iterable[KitComponent],
    value_in_cents: int = 0,
) -> Kit:
    components = list(components)
    errors: dict[str, list[str]] = {}

    if db.get(Organization, organization_id) is None:
        errors.setdefault("organization", []).append("must exist")
    if _name_taken(db, name):
        errors.setdefault("name", []).append("has already been taken")

    component_ids = sorted({component.item_id for component in components})
    found = set(
        db.scalars(
            select(Item.id).where(Item.id.in_(component_ids), Item.organization_id == organization_id)
        ).all()
    )
    missing = [item_id for item_id in component_ids if item_id not in found]
    if missing:
        errors.setdefault("components", []).append(f"unknown items: {missing}")

    if errors:
        raise ItemValidationError(errors)

    kit = Kit(name=name, organization_id=organization_id, value_in_cents=value_in_cents)
    db.add(kit)
    db.flush()

    db.add(
        Item(
            name=name,
            partner_key=KIT_PARTNER_KEY,
            organization_id=organization_id,
            value_in_cents=value_in_cents,
            kit_id=kit.id,
        )
    )
    for component in components:
        db.add(
            LineItem(
                item_id=component.item_id,
                quantity=component.quantity,
                itemizable_type=LineItemSource.KIT,
                itemizable_id=kit.id,
            )
        )

    db.commit()
    db.refresh(kit)
    logger.info("Created kit %s (%r) with %s components", kit.id, kit.name, len(components))
    return kit
