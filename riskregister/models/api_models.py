"""
API Request/Response Models — contract for the local UI gateway.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class CSVImportRequest(BaseModel):
    csv: str = Field(..., description="CSV text with a header row")


class CSVImportResponse(BaseModel):
    imported: int
    rejected: int = 0


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Category to add")


class CategoryResponse(BaseModel):
    added: bool
    categories: list[str]


class SeedResponse(BaseModel):
    seeded: int
