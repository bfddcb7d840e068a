"""Item lifecycle guard.

Decides whether an item may be deactivated or permanently removed and applies
the transition. Usage is checked through independent rules:

    DEACTIVATION_RULES   kit membership, on-hand inventory
    DELETION_RULES       the above plus line item history and barcodes

``destroy_strict`` refuses to remove a used item. ``destroy`` is the default
removal path: it hard-deletes unused items and hides the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from diaperbank.errors import LifecycleError
from diaperbank.models import Item, Kit, LineItem, LineItemSource
from diaperbank.services.inventory import on_hand_quantity

logger = logging.getLogger(__name__)

CANNOT_DEACTIVATE_MESSAGE = "Cannot deactivate item - it is in a storage location or kit!"
CANNOT_DELETE_MESSAGE = "Cannot delete item - it has already been used!"


@dataclass(frozen=True)
class UsageRule:
    name: str
    in_use: Callable[[Session, Item], bool]


@dataclass(frozen=True)
class LifecycleResult:
    item_id: int
    action: str
    cascaded_kit_id: int | None = None


def in_kit(db: Session, item: Item) -> bool:
    return bool(
        db.scalar(
            select(
                exists().where(
                    LineItem.item_id == item.id,
                    LineItem.itemizable_type == LineItemSource.KIT,
                )
            )
        )
    )


def has_inventory(db: Session, item: Item) -> bool:
    return on_hand_quantity(db, item.id) > 0


def has_line_items(db: Session, item: Item) -> bool:
    return bool(db.scalar(select(exists().where(LineItem.item_id == item.id))))


def has_barcodes(_: Session, item: Item) -> bool:
    # barcode_count is trusted as-is; mappings are not recounted.
    return bool(item.barcode_count)


KIT_MEMBERSHIP = UsageRule("kit_membership", in_kit)
ON_HAND_INVENTORY = UsageRule("on_hand_inventory", has_inventory)
LINE_ITEM_HISTORY = UsageRule("line_item_history", has_line_items)
BARCODES = UsageRule("barcodes", has_barcodes)

DEACTIVATION_RULES: tuple[UsageRule, ...] = (KIT_MEMBERSHIP, ON_HAND_INVENTORY)
DELETION_RULES: tuple[UsageRule, ...] = DEACTIVATION_RULES + (LINE_ITEM_HISTORY, BARCODES)


def blocking_rules(db: Session, item: Item, rules: Sequence[UsageRule] = DELETION_RULES) -> list[str]:
    return [rule.name for rule in rules if rule.in_use(db, item)]


def can_deactivate_or_delete(db: Session, item: Item) -> bool:
    return not any(rule.in_use(db, item) for rule in DEACTIVATION_RULES)


def can_delete(db: Session, item: Item) -> bool:
    if not can_deactivate_or_delete(db, item):
        return False
    return not any(rule.in_use(db, item) for rule in DELETION_RULES if rule not in DEACTIVATION_RULES)


def cascade_kit_deactivation(item: Item) -> Kit | None:
    """Deactivate the kit this item represents, if any."""
    kit = item.kit
    if kit is None or not kit.active:
        return None
    kit.active = False
    logger.info("Deactivated kit %s along with its item %s", kit.id, item.id)
    return kit


def _soft_deactivate(db: Session, item: Item) -> LifecycleResult:
    item.active = False
    kit = cascade_kit_deactivation(item)
    db.add(item)
    if kit is not None:
        db.add(kit)
    db.commit()
    logger.info("Deactivated item %s", item.id)
    return LifecycleResult(item_id=item.id, action="deactivated", cascaded_kit_id=kit.id if kit else None)


def _hard_delete(db: Session, item: Item) -> LifecycleResult:
    item_id = item.id
    # A kit never stays active without the item that represents it.
    kit = cascade_kit_deactivation(item)
    kit_id = kit.id if kit else None
    if kit is not None:
        db.add(kit)
    db.delete(item)
    db.commit()
    logger.info("Deleted item %s", item_id)
    return LifecycleResult(item_id=item_id, action="deleted", cascaded_kit_id=kit_id)


def deactivate(db: Session, item: Item) -> LifecycleResult:
    if not can_deactivate_or_delete(db, item):
        blocking = blocking_rules(db, item, DEACTIVATION_RULES)
        logger.warning("Refused to deactivate item %s: %s", item.id, ", ".join(blocking))
        raise LifecycleError(CANNOT_DEACTIVATE_MESSAGE, item_id=item.id, blocking=blocking)
    return _soft_deactivate(db, item)


def destroy_strict(db: Session, item: Item) -> LifecycleResult:
    if not can_delete(db, item):
        blocking = blocking_rules(db, item, DELETION_RULES)
        item.errors.append(CANNOT_DELETE_MESSAGE)
        logger.warning("Refused to delete item %s: %s", item.id, ", ".join(blocking))
        raise LifecycleError(CANNOT_DELETE_MESSAGE, item_id=item.id, blocking=blocking)
    return _hard_delete(db, item)


def destroy(db: Session, item: Item) -> LifecycleResult:
    if can_delete(db, item):
        return _hard_delete(db, item)
    return _soft_deactivate(db, item)


def reactivate(db: Session, ids: int | Sequence[int]) -> int:
    item_ids = [ids] if isinstance(ids, int) else list(ids)
    if not item_ids:
        return 0

    result = db.execute(
        update(Item).where(Item.id.in_(item_ids)).values(active=True).execution_options(synchronize_session="fetch")
    )
    db.commit()
    logger.info("Reactivated items %s", item_ids)
    return int(result.rowcount or 0)
