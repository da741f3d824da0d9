"""
Health Check Route — GET /health
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from riskregister.api.dependencies import get_store
from riskregister.store.persistence import PersistedRiskStore

router = APIRouter()


@router.get("/health")
async def health(store: PersistedRiskStore = Depends(get_store)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "risks": len(store.risks),
        "hydrated": store.hydrated,
    }
