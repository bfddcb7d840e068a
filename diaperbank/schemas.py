from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ItemBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    partner_key: str = Field(min_length=1, max_length=120)
    category: str | None = Field(default=None, max_length=120)
    distribution_quantity: int | None = Field(default=None, ge=0)
    on_hand_minimum_quantity: int = Field(default=0, ge=0)
    on_hand_recommended_quantity: int | None = Field(default=None, ge=0)
    package_size: int | None = Field(default=None, ge=0)
    value_in_cents: int = Field(default=0, ge=0)
    visible_to_partners: bool = True
    item_category_id: int | None = None

    @field_validator("name", "partner_key")
    @classmethod
    def strip_required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("can't be blank")
        return value

    @field_validator("distribution_quantity", "package_size", mode="before")
    @classmethod
    def empty_string_is_none(cls, value: object) -> object:
        return _blank_to_none(value)


class ItemCreate(ItemBase):
    organization_id: int
    active: bool = True


class ItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    partner_key: str | None = Field(default=None, min_length=1, max_length=120)
    category: str | None = Field(default=None, max_length=120)
    distribution_quantity: int | None = Field(default=None, ge=0)
    on_hand_minimum_quantity: int | None = Field(default=None, ge=0)
    on_hand_recommended_quantity: int | None = Field(default=None, ge=0)
    package_size: int | None = Field(default=None, ge=0)
    value_in_cents: int | None = Field(default=None, ge=0)
    visible_to_partners: bool | None = None
    item_category_id: int | None = None

    @field_validator("name", "partner_key")
    @classmethod
    def strip_required_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("can't be blank")
        return value

    @field_validator("distribution_quantity", "package_size", mode="before")
    @classmethod
    def empty_string_is_none(cls, value: object) -> object:
        return _blank_to_none(value)


class ItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    partner_key: str
    category: str | None
    distribution_quantity: int | None
    on_hand_minimum_quantity: int
    on_hand_recommended_quantity: int | None
    package_size: int | None
    value_in_cents: int
    barcode_count: int | None
    active: bool
    visible_to_partners: bool
    item_category_id: int | None
    kit_id: int | None
    organization_id: int
    default_quantity: int
    is_other: bool
    created_at: datetime
    updated_at: datetime


class ItemListResponse(BaseModel):
    items: list[ItemRead]
    total: int


class LifecycleStatus(BaseModel):
    item_id: int
    active: bool
    can_deactivate_or_delete: bool
    can_delete: bool
    blocking: list[str]


class LifecycleResultRead(BaseModel):
    item_id: int
    action: str
    cascaded_kit_id: int | None


class ReactivateRequest(BaseModel):
    item_ids: list[int] = Field(min_length=1, max_length=300)


class ReactivateResponse(BaseModel):
    updated_count: int
    item_ids: list[int]


class StorageLocationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str | None
    organization_id: int


class BarcodeCreate(BaseModel):
    value: str = Field(min_length=1, max_length=64)
    quantity: int = Field(default=1, ge=1)


class BarcodeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    value: str
    quantity: int
    item_id: int


class KitComponent(BaseModel):
    item_id: int
    quantity: int = Field(ge=1)


class KitCreate(BaseModel):
    organization_id: int
    name: str = Field(min_length=1, max_length=255)
    value_in_cents: int = Field(default=0, ge=0)
    components: list[KitComponent] = Field(min_length=1)


class KitRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    active: bool
    organization_id: int
    item_id: int | None = None
