from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from diaperbank.models import InventoryItem

logger = logging.getLogger(__name__)


def on_hand_quantity(db: Session, item_id: int) -> int:
    total = db.scalar(
        select(func.coalesce(func.sum(InventoryItem.quantity), 0)).where(InventoryItem.item_id == item_id)
    )
    return int(total or 0)


def on_hand_by_location(db: Session, item_id: int) -> dict[int, int]:
    rows = db.execute(
        select(InventoryItem.storage_location_id, InventoryItem.quantity).where(
            InventoryItem.item_id == item_id, InventoryItem.quantity > 0
        )
    ).all()
    return {location_id: quantity for location_id, quantity in rows}


def set_on_hand(db: Session, storage_location_id: int, item_id: int, quantity: int) -> InventoryItem:
    if quantity < 0:
        raise ValueError(f"On-hand quantity cannot be negative: {quantity}")

    row = db.scalar(
        select(InventoryItem).where(
            InventoryItem.storage_location_id == storage_location_id,
            InventoryItem.item_id == item_id,
        )
    )
    if row is None:
        row = InventoryItem(storage_location_id=storage_location_id, item_id=item_id, quantity=quantity)
    else:
        row.quantity = quantity

    db.add(row)
    db.commit()
    logger.info("Set on-hand quantity of item %s at location %s to %s", item_id, storage_location_id, quantity)
    return row
