"""
FastAPI Dependencies — the application's store, injected via Depends().
"""

from __future__ import annotations

from fastapi import Request

from riskregister.store.persistence import PersistedRiskStore


def get_store(request: Request) -> PersistedRiskStore:
    """Store built by the app lifespan (or injected by create_app)."""
    return request.app.state.store
