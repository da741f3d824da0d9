"""
Risk Routes — CRUD, filters, derived views, categories and CSV transfer.

Thin layer over the store: user-data problems come back as return values from
the store and are mapped to status codes here.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from riskregister.api.dependencies import get_store
from riskregister.core.matrix import build_risk_matrix
from riskregister.models.api_models import (
    CategoryRequest,
    CategoryResponse,
    CSVImportRequest,
    CSVImportResponse,
    SeedResponse,
)
from riskregister.models.risk_models import (
    MatrixCell,
    Risk,
    RiskFilters,
    RiskInput,
    RiskStats,
    RiskUpdate,
)
from riskregister.store.persistence import PersistedRiskStore

logger = logging.getLogger("riskregister.api")
router = APIRouter()


@router.get("/risks", response_model=list[Risk])
async def list_filtered_risks(store: PersistedRiskStore = Depends(get_store)):
    """Risks matching the current filters."""
    return list(store.filtered_risks)


@router.get("/risks/all", response_model=list[Risk])
async def list_all_risks(store: PersistedRiskStore = Depends(get_store)):
    return list(store.risks)


@router.get("/risks/{risk_id}", response_model=Risk)
async def get_risk(risk_id: str, store: PersistedRiskStore = Depends(get_store)):
    risk = store.get_risk(risk_id)
    if risk is None:
        raise HTTPException(status_code=404, detail=f"Risk {risk_id} not found")
    return risk


@router.post("/risks", response_model=Risk, status_code=201)
async def create_risk(data: RiskInput, store: PersistedRiskStore = Depends(get_store)):
    return store.add_risk(data)


@router.patch("/risks/{risk_id}", response_model=Risk)
async def update_risk(
    risk_id: str, updates: RiskUpdate, store: PersistedRiskStore = Depends(get_store)
):
    risk = store.update_risk(risk_id, updates)
    if risk is None:
        raise HTTPException(status_code=404, detail=f"Risk {risk_id} not found")
    return risk


@router.delete("/risks/{risk_id}", status_code=204)
async def delete_risk(risk_id: str, store: PersistedRiskStore = Depends(get_store)):
    store.delete_risk(risk_id)
    return Response(status_code=204)


@router.get("/filters", response_model=RiskFilters)
async def get_filters(store: PersistedRiskStore = Depends(get_store)):
    return store.filters


@router.patch("/filters", response_model=RiskFilters)
async def update_filters(
    updates: dict[str, Any], store: PersistedRiskStore = Depends(get_store)
):
    """Merge filter changes; unknown filter names or values are rejected."""
    try:
        return store.set_filters(updates)
    except ValidationError as e:
        raise HTTPException(
            status_code=422, detail=[err["msg"] for err in e.errors()]
        ) from e


@router.get("/stats", response_model=RiskStats)
async def get_stats(store: PersistedRiskStore = Depends(get_store)):
    return store.stats


@router.get("/matrix", response_model=list[list[MatrixCell]])
async def get_matrix(store: PersistedRiskStore = Depends(get_store)):
    """Probability/impact grid of the filtered view."""
    return build_risk_matrix(store.filtered_risks)


@router.get("/categories", response_model=list[str])
async def list_categories(store: PersistedRiskStore = Depends(get_store)):
    return list(store.categories)


@router.post("/categories", response_model=CategoryResponse)
async def add_category(req: CategoryRequest, store: PersistedRiskStore = Depends(get_store)):
    added = store.add_category(req.name)
    return CategoryResponse(added=added, categories=list(store.categories))


@router.get("/export/csv", response_class=PlainTextResponse)
async def export_csv(store: PersistedRiskStore = Depends(get_store)):
    return PlainTextResponse(
        store.export_to_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="risk-register.csv"'},
    )


@router.post("/import/csv", response_model=CSVImportResponse)
async def import_csv(req: CSVImportRequest, store: PersistedRiskStore = Depends(get_store)):
    result = store.import_csv(req.csv)
    if result.injection_detected:
        logger.info("Rejected CSV upload flagged as formula injection")
        raise HTTPException(
            status_code=400,
            detail="CSV rejected: potential formula injection detected. No risks imported.",
        )
    return CSVImportResponse(imported=result.imported, rejected=result.rejected_rows)


@router.post("/seed", response_model=SeedResponse)
async def seed_demo_data(store: PersistedRiskStore = Depends(get_store)):
    return SeedResponse(seeded=store.seed_demo_data())
