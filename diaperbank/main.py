from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from diaperbank.database import Base, engine, get_db
from diaperbank.errors import ItemValidationError, LifecycleError
from diaperbank.models import Item, Kit
from diaperbank.schemas import (
    BarcodeCreate,
    BarcodeRead,
    ItemCreate,
    ItemListResponse,
    ItemRead,
    ItemUpdate,
    KitCreate,
    KitRead,
    LifecycleResultRead,
    LifecycleStatus,
    ReactivateRequest,
    ReactivateResponse,
    StorageLocationRead,
)
from diaperbank.services import catalog, lifecycle, queries


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Diaper Bank Item Catalog",
    version="1.0.0",
    description="Item catalog with usage-guarded deactivation and deletion.",
    lifespan=lifespan,
)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(_: Request, exc: LifecycleError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": exc.message, "item_id": exc.item_id, "blocking": exc.blocking},
    )


@app.exception_handler(ItemValidationError)
async def item_validation_error_handler(_: Request, exc: ItemValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.errors})


def _get_item_or_404(db: Session, item_id: int) -> Item:
    item = catalog.get_item_or_none(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail=f"Item {item_id} not found")
    return item


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/items", response_model=ItemRead)
def create_item(payload: ItemCreate, db: Session = Depends(get_db)) -> ItemRead:
    return ItemRead.model_validate(catalog.create_item(db, payload))


@app.get("/api/items", response_model=ItemListResponse)
def list_items(
    organization_id: int | None = Query(default=None),
    partner_key: str | None = Query(default=None),
    size: str | None = Query(default=None),
    kind: str | None = Query(default=None, pattern="^(disposable|cloth)$"),
    barcoded: bool = Query(default=False),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> ItemListResponse:
    stmt = select(Item)
    if organization_id is not None:
        stmt = queries.for_organization(organization_id, stmt)
    if not include_inactive:
        stmt = queries.active(stmt)
    if partner_key:
        stmt = queries.by_partner_key(partner_key, stmt)
    if size:
        stmt = queries.by_size(size, stmt)
    if kind == "disposable":
        stmt = queries.disposable(stmt)
    elif kind == "cloth":
        stmt = queries.cloth_diapers(stmt)
    if barcoded:
        stmt = queries.barcoded_items(stmt)

    total = int(db.scalar(select(func.count()).select_from(stmt.subquery())) or 0)
    items = db.scalars(queries.alphabetized(stmt)).all()
    return ItemListResponse(items=[ItemRead.model_validate(item) for item in items], total=total)


@app.post("/api/items/reactivate", response_model=ReactivateResponse)
def reactivate_items(payload: ReactivateRequest, db: Session = Depends(get_db)) -> ReactivateResponse:
    unique_ids = sorted(set(payload.item_ids))
    found_ids = set(db.scalars(select(Item.id).where(Item.id.in_(unique_ids))).all())
    missing_ids = [item_id for item_id in unique_ids if item_id not in found_ids]
    if missing_ids:
        raise HTTPException(status_code=404, detail=f"Items not found: {missing_ids}")

    updated = lifecycle.reactivate(db, unique_ids)
    return ReactivateResponse(updated_count=updated, item_ids=unique_ids)


@app.get("/api/items/{item_id}", response_model=ItemRead)
def get_item(item_id: int, db: Session = Depends(get_db)) -> ItemRead:
    return ItemRead.model_validate(_get_item_or_404(db, item_id))


@app.put("/api/items/{item_id}", response_model=ItemRead)
def update_item(item_id: int, payload: ItemUpdate, db: Session = Depends(get_db)) -> ItemRead:
    item = _get_item_or_404(db, item_id)
    return ItemRead.model_validate(catalog.update_item(db, item, payload))


@app.get("/api/items/{item_id}/lifecycle", response_model=LifecycleStatus)
def item_lifecycle(item_id: int, db: Session = Depends(get_db)) -> LifecycleStatus:
    item = _get_item_or_404(db, item_id)
    return LifecycleStatus(
        item_id=item.id,
        active=item.active,
        can_deactivate_or_delete=lifecycle.can_deactivate_or_delete(db, item),
        can_delete=lifecycle.can_delete(db, item),
        blocking=lifecycle.blocking_rules(db, item),
    )


@app.post("/api/items/{item_id}/deactivate", response_model=LifecycleResultRead)
def deactivate_item(item_id: int, db: Session = Depends(get_db)) -> LifecycleResultRead:
    result = lifecycle.deactivate(db, _get_item_or_404(db, item_id))
    return LifecycleResultRead(**asdict(result))


@app.delete("/api/items/{item_id}", response_model=LifecycleResultRead)
def delete_item(item_id: int, db: Session = Depends(get_db)) -> LifecycleResultRead:
    result = lifecycle.destroy(db, _get_item_or_404(db, item_id))
    return LifecycleResultRead(**asdict(result))


@app.delete("/api/items/{item_id}/purge", response_model=LifecycleResultRead)
def purge_item(item_id: int, db: Session = Depends(get_db)) -> LifecycleResultRead:
    result = lifecycle.destroy_strict(db, _get_item_or_404(db, item_id))
    return LifecycleResultRead(**asdict(result))


@app.get("/api/items/{item_id}/storage-locations", response_model=list[StorageLocationRead])
def item_storage_locations(item_id: int, db: Session = Depends(get_db)) -> list[StorageLocationRead]:
    item = _get_item_or_404(db, item_id)
    return [StorageLocationRead.model_validate(row) for row in queries.storage_locations_containing(db, item)]


@app.get("/api/items/{item_id}/barcodes", response_model=list[BarcodeRead])
def item_barcodes(item_id: int, db: Session = Depends(get_db)) -> list[BarcodeRead]:
    item = _get_item_or_404(db, item_id)
    return [BarcodeRead.model_validate(row) for row in queries.barcodes_for(db, item)]


@app.post("/api/items/{item_id}/barcodes", response_model=BarcodeRead)
def add_item_barcode(item_id: int, payload: BarcodeCreate, db: Session = Depends(get_db)) -> BarcodeRead:
    item = _get_item_or_404(db, item_id)
    barcode = catalog.register_barcode(db, item, value=payload.value, quantity=payload.quantity)
    return BarcodeRead.model_validate(barcode)


@app.post("/api/kits", response_model=KitRead)
def create_kit(payload: KitCreate, db: Session = Depends(get_db)) -> KitRead:
    kit = catalog.create_kit(
        db,
        organization_id=payload.organization_id,
        name=payload.name,
        components=payload.components,
        value_in_cents=payload.value_in_cents,
    )
    return _serialize_kit(kit)


@app.get("/api/kits/{kit_id}", response_model=KitRead)
def get_kit(kit_id: int, db: Session = Depends(get_db)) -> KitRead:
    kit = db.get(Kit, kit_id)
    if not kit:
        raise HTTPException(status_code=404, detail=f"Kit {kit_id} not found")
    return _serialize_kit(kit)


def _serialize_kit(kit: Kit) -> KitRead:
    return KitRead(
        id=kit.id,
        name=kit.name,
        active=kit.active,
        organization_id=kit.organization_id,
        item_id=kit.item.id if kit.item else None,
    )
