import os
from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    and_,
)
from sqlalchemy.orm import Mapped, foreign, mapped_column, relationship

from diaperbank.database import Base

DEFAULT_DISTRIBUTION_QUANTITY = int(os.getenv("DEFAULT_DISTRIBUTION_QUANTITY", "50"))
OTHER_PARTNER_KEY = "other"
KIT_PARTNER_KEY = "kit"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LineItemSource(StrEnum):
    DONATION = "donation"
    PURCHASE = "purchase"
    DISTRIBUTION = "distribution"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    KIT = "kit"


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    items: Mapped[list["Item"]] = relationship(back_populates="organization")
    kits: Mapped[list["Kit"]] = relationship(back_populates="organization")
    storage_locations: Mapped[list["StorageLocation"]] = relationship(back_populates="organization")


class BaseItem(Base):
    __tablename__ = "base_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    partner_key: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    size: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)


class ItemCategory(Base):
    __tablename__ = "item_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)


class Kit(Base):
    __tablename__ = "kits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    visible_to_partners: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    value_in_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    organization: Mapped[Organization] = relationship(back_populates="kits")
    item: Mapped[Optional["Item"]] = relationship(back_populates="kit", uselist=False)
    line_items: Mapped[list["LineItem"]] = relationship(
        primaryjoin=lambda: and_(
            Kit.id == foreign(LineItem.itemizable_id), LineItem.itemizable_type == LineItemSource.KIT
        ),
        viewonly=True,
    )


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("distribution_quantity IS NULL OR distribution_quantity >= 0", name="ck_items_distribution_qty"),
        CheckConstraint("on_hand_minimum_quantity >= 0", name="ck_items_on_hand_minimum"),
        CheckConstraint(
            "on_hand_recommended_quantity IS NULL OR on_hand_recommended_quantity >= 0",
            name="ck_items_on_hand_recommended",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    partner_key: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    distribution_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    on_hand_minimum_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    on_hand_recommended_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    package_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    value_in_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    barcode_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    visible_to_partners: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    item_category_id: Mapped[int | None] = mapped_column(ForeignKey("item_categories.id"), nullable=True)
    kit_id: Mapped[int | None] = mapped_column(ForeignKey("kits.id"), nullable=True, unique=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    organization: Mapped[Organization] = relationship(back_populates="items")
    item_category: Mapped[ItemCategory | None] = relationship()
    kit: Mapped[Kit | None] = relationship(back_populates="item")
    base_item: Mapped[BaseItem | None] = relationship(
        primaryjoin="foreign(Item.partner_key) == BaseItem.partner_key",
        viewonly=True,
    )
    line_items: Mapped[list["LineItem"]] = relationship(back_populates="item")
    inventory_items: Mapped[list["InventoryItem"]] = relationship(
        back_populates="item", cascade="all, delete-orphan"
    )
    barcode_items: Mapped[list["BarcodeItem"]] = relationship(
        back_populates="item", cascade="all, delete-orphan"
    )

    @property
    def default_quantity(self) -> int:
        if self.distribution_quantity is not None:
            return self.distribution_quantity
        return DEFAULT_DISTRIBUTION_QUANTITY

    @property
    def is_other(self) -> bool:
        return self.partner_key == OTHER_PARTNER_KEY

    @property
    def errors(self) -> list[str]:
        # Not mapped; lives only as long as this instance.
        return self.__dict__.setdefault("_lifecycle_errors", [])


class StorageLocation(Base):
    __tablename__ = "storage_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)

    organization: Mapped[Organization] = relationship(back_populates="storage_locations")
    inventory_items: Mapped[list["InventoryItem"]] = relationship(
        back_populates="storage_location", cascade="all, delete-orphan"
    )


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (
        UniqueConstraint("storage_location_id", "item_id", name="uq_inventory_location_item"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    storage_location_id: Mapped[int] = mapped_column(
        ForeignKey("storage_locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    storage_location: Mapped[StorageLocation] = relationship(back_populates="inventory_items")
    item: Mapped[Item] = relationship(back_populates="inventory_items")


class LineItem(Base):
    __tablename__ = "line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    itemizable_type: Mapped[LineItemSource] = mapped_column(Enum(LineItemSource), nullable=False, index=True)
    itemizable_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    item: Mapped[Item] = relationship(back_populates="line_items")


class BarcodeItem(Base):
    __tablename__ = "barcode_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    value: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    item: Mapped[Item] = relationship(back_populates="barcode_items")
