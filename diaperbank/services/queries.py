"""Composable item queries.

Every helper takes an optional ``Select`` and returns a narrowed one, so an
organization scope can be applied first and any filter chained after it::

    stmt = by_base_item(base, for_organization(org.id))
    items = db.scalars(stmt).all()
"""

from __future__ import annotations

from sqlalchemy import Select, exists, func, or_, select
from sqlalchemy.orm import Session

from diaperbank.models import BarcodeItem, BaseItem, InventoryItem, Item, StorageLocation


def _base(stmt: Select[tuple[Item]] | None) -> Select[tuple[Item]]:
    return stmt if stmt is not None else select(Item)


def _partner_keys_where(*criteria):
    return Item.partner_key.in_(select(BaseItem.partner_key).where(*criteria))


def _is_cloth():
    return or_(func.lower(BaseItem.category).like("%cloth%"), func.lower(BaseItem.name).like("%cloth%"))


def for_organization(organization_id: int, stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(Item.organization_id == organization_id)


def active(stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(Item.active.is_(True))


def alphabetized(stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).order_by(Item.name.asc())


def by_size(size: str, stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(_partner_keys_where(BaseItem.size == size))


def by_base_item(base_item: BaseItem, stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(Item.partner_key == base_item.partner_key)


def by_partner_key(partner_key: str, stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(Item.partner_key == partner_key)


def disposable(stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(
        _partner_keys_where(func.lower(BaseItem.category).like("%diaper%"), ~_is_cloth())
    )


def cloth_diapers(stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(_partner_keys_where(_is_cloth()))


def barcoded_items(stmt: Select[tuple[Item]] | None = None) -> Select[tuple[Item]]:
    return _base(stmt).where(exists().where(BarcodeItem.item_id == Item.id))


def storage_locations_containing(db: Session, item: Item) -> list[StorageLocation]:
    stmt = (
        select(StorageLocation)
        .join(InventoryItem, InventoryItem.storage_location_id == StorageLocation.id)
        .where(InventoryItem.item_id == item.id, InventoryItem.quantity > 0)
        .distinct()
        .order_by(StorageLocation.id.asc())
    )
    return list(db.scalars(stmt).all())


def barcodes_for(db: Session, item: Item) -> list[BarcodeItem]:
    stmt = select(BarcodeItem).where(BarcodeItem.item_id == item.id).order_by(BarcodeItem.id.asc())
    return list(db.scalars(stmt).all())
