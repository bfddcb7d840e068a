import pytest
from sqlalchemy import func, select

from diaperbank.errors import LifecycleError
from diaperbank.models import Item, LineItemSource
from diaperbank.schemas import KitComponent
from diaperbank.services import catalog, lifecycle
from diaperbank.services.inventory import set_on_hand


def _count(db, *criteria) -> int:
    return int(db.scalar(select(func.count()).select_from(Item).where(*criteria)) or 0)


def _active_count(db) -> int:
    return _count(db, Item.active.is_(True))


@pytest.fixture
def kit_with_component(db, organization, make_item):
    component = make_item(name="Kit Component")
    kit = catalog.create_kit(db, organization.id, "Newborn Kit", [KitComponent(item_id=component.id, quantity=3)])
    return kit, component


def test_unused_item_can_be_deactivated_and_deleted(db, make_item) -> None:
    item = make_item()
    assert lifecycle.can_deactivate_or_delete(db, item) is True
    assert lifecycle.can_delete(db, item) is True
    assert lifecycle.blocking_rules(db, item) == []


def test_kit_component_is_guarded(db, kit_with_component) -> None:
    _, component = kit_with_component
    assert lifecycle.can_deactivate_or_delete(db, component) is False
    assert lifecycle.can_delete(db, component) is False
    assert "kit_membership" in lifecycle.blocking_rules(db, component)


def test_item_with_inventory_is_guarded(db, make_item, storage_location) -> None:
    item = make_item()
    set_on_hand(db, storage_location.id, item.id, 5)
    assert lifecycle.can_deactivate_or_delete(db, item) is False
    assert lifecycle.can_delete(db, item) is False
    assert lifecycle.blocking_rules(db, item, lifecycle.DEACTIVATION_RULES) == ["on_hand_inventory"]


def test_zero_inventory_does_not_guard(db, make_item, storage_location) -> None:
    item = make_item()
    set_on_hand(db, storage_location.id, item.id, 0)
    assert lifecycle.can_deactivate_or_delete(db, item) is True


def test_line_items_block_delete_only(db, make_item, add_line_item) -> None:
    item = make_item()
    add_line_item(item, LineItemSource.DONATION)
    assert lifecycle.can_deactivate_or_delete(db, item) is True
    assert lifecycle.can_delete(db, item) is False
    assert lifecycle.blocking_rules(db, item) == ["line_item_history"]


def test_barcode_count_blocks_delete(db, make_item) -> None:
    item = make_item()
    item.barcode_count = 10
    assert lifecycle.can_deactivate_or_delete(db, item) is True
    assert lifecycle.can_delete(db, item) is False


def test_predicates_are_repeatable(db, make_item, add_line_item) -> None:
    item = make_item()
    add_line_item(item)
    first = (lifecycle.can_deactivate_or_delete(db, item), lifecycle.can_delete(db, item))
    second = (lifecycle.can_deactivate_or_delete(db, item), lifecycle.can_delete(db, item))
    assert first == second == (True, False)
    assert item.active is True


def test_each_rule_is_checked_independently(db, make_item, storage_location) -> None:
    item = make_item()
    set_on_hand(db, storage_location.id, item.id, 3)
    assert lifecycle.ON_HAND_INVENTORY.in_use(db, item) is True
    assert lifecycle.KIT_MEMBERSHIP.in_use(db, item) is False
    assert lifecycle.LINE_ITEM_HISTORY.in_use(db, item) is False
    assert lifecycle.BARCODES.in_use(db, item) is False


def test_deactivate_flips_active(db, make_item) -> None:
    item = make_item()
    result = lifecycle.deactivate(db, item)
    assert result == lifecycle.LifecycleResult(item_id=item.id, action="deactivated")
    db.refresh(item)
    assert item.active is False


def test_deactivate_refused_leaves_item_unchanged(db, make_item, storage_location) -> None:
    item = make_item()
    set_on_hand(db, storage_location.id, item.id, 5)

    with pytest.raises(LifecycleError, match="Cannot deactivate item - it is in a storage location or kit!") as excinfo:
        lifecycle.deactivate(db, item)

    assert excinfo.value.blocking == ["on_hand_inventory"]
    db.refresh(item)
    assert item.active is True


def test_deactivate_cascades_to_kit(db, kit_with_component) -> None:
    kit, _ = kit_with_component
    kit_item = kit.item

    result = lifecycle.deactivate(db, kit_item)

    assert result.cascaded_kit_id == kit.id
    db.refresh(kit)
    assert kit.active is False
    assert kit_item.active is False


def test_destroy_strict_deletes_unused_item(db, make_item) -> None:
    item = make_item()
    before = _count(db)
    result = lifecycle.destroy_strict(db, item)
    assert result.action == "deleted"
    assert _count(db) == before - 1


def test_destroy_strict_refuses_used_item(db, make_item, add_line_item) -> None:
    item = make_item()
    add_line_item(item)
    before = _count(db)

    with pytest.raises(LifecycleError) as excinfo:
        lifecycle.destroy_strict(db, item)

    assert str(excinfo.value) == "Cannot delete item - it has already been used!"
    assert item.errors == ["Cannot delete item - it has already been used!"]
    assert _count(db) == before


def test_destroy_strict_removes_stale_barcode_mappings(db, make_item) -> None:
    item = make_item()
    catalog.register_barcode(db, item, "999")
    item.barcode_count = 0
    db.commit()

    lifecycle.destroy_strict(db, item)

    assert _count(db) == 0


def test_destroy_hard_deletes_item_without_history(db, make_item) -> None:
    item = make_item()
    before_total, before_active = _count(db), _active_count(db)

    assert lifecycle.destroy(db, item).action == "deleted"

    assert _count(db) == before_total - 1
    assert _active_count(db) == before_active - 1


def test_destroy_hides_item_with_history(db, make_item, add_line_item) -> None:
    item = make_item()
    make_item()
    add_line_item(item, LineItemSource.PURCHASE)
    before_total, before_active = _count(db), _active_count(db)

    assert lifecycle.destroy(db, item).action == "deactivated"

    assert _count(db) == before_total
    assert _active_count(db) == before_active - 1
    assert item.active is False


def test_destroy_hides_item_and_deactivates_its_kit(db, kit_with_component, add_line_item) -> None:
    kit, _ = kit_with_component
    kit_item = kit.item
    add_line_item(kit_item, LineItemSource.PURCHASE)
    assert kit.active is True
    before_total, before_active = _count(db), _active_count(db)

    result = lifecycle.destroy(db, kit_item)

    assert result.cascaded_kit_id == kit.id
    assert _count(db) == before_total
    assert _active_count(db) == before_active - 1
    db.refresh(kit)
    assert kit_item.active is False
    assert kit.active is False


def test_reactivate_list_of_ids_is_unconditional(db, make_item, storage_location) -> None:
    first = make_item(active=False)
    second = make_item(active=False)
    set_on_hand(db, storage_location.id, first.id, 7)
    set_on_hand(db, storage_location.id, second.id, 7)
    before = _active_count(db)

    updated = lifecycle.reactivate(db, [first.id, second.id])

    assert updated == 2
    assert _active_count(db) == before + 2


def test_reactivate_single_id(db, make_item) -> None:
    item = make_item(active=False)
    before = _active_count(db)
    lifecycle.reactivate(db, item.id)
    assert _active_count(db) == before + 1
    db.refresh(item)
    assert item.active is True


def test_hard_delete_of_kit_item_deactivates_kit(db, kit_with_component) -> None:
    kit, _ = kit_with_component
    kit_item = kit.item

    result = lifecycle.destroy_strict(db, kit_item)

    assert result.action == "deleted"
    assert result.cascaded_kit_id == kit.id
    db.refresh(kit)
    assert kit.active is False
    assert kit.item is None
