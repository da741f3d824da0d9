"""
Risk Data Models — canonical risk record, inputs, filters and derived stats.

Wire names are camelCase (``riskScore``, ``mitigationPlan``, ...) to match the
CSV header and the persisted document; Python attributes are snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    FiniteFloat,
    computed_field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from riskregister.core.scoring import calculate_risk_score, clamp_score
from riskregister.core.timestamps import to_iso
from riskregister.models.enums import RiskSeverity, RiskStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Risk(_CamelModel):
    """A tracked risk. Immutable; updates produce a new record."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: str = Field(..., min_length=1)
    title: str
    description: str
    probability: int = Field(..., ge=1, le=5)
    impact: int = Field(..., ge=1, le=5)
    category: str
    status: RiskStatus = RiskStatus.OPEN
    mitigation_plan: str = ""
    creation_date: datetime
    last_modified: datetime

    @field_validator("probability", "impact", mode="before")
    @classmethod
    def _clamp_rating(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return clamp_score(value)
        return value

    @computed_field(alias="riskScore")
    @property
    def risk_score(self) -> int:
        return int(calculate_risk_score(self.probability, self.impact))

    @field_serializer("creation_date", "last_modified")
    def _serialize_timestamp(self, value: datetime) -> str:
        return to_iso(value)


class RiskInput(_CamelModel):
    """Payload for creating a risk."""

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    probability: FiniteFloat
    impact: FiniteFloat
    category: str = ""
    status: RiskStatus | None = None
    mitigation_plan: str | None = None


class RiskUpdate(_CamelModel):
    """
    Partial update for an existing risk.

    Only fields present in ``model_fields_set`` are applied, so an omitted
    field and a field explicitly set to an empty value are told apart.
    """

    title: str | None = None
    description: str | None = None
    probability: FiniteFloat | None = None
    impact: FiniteFloat | None = None
    category: str | None = None
    status: RiskStatus | None = None
    mitigation_plan: str | None = None

    def provided(self) -> dict[str, Any]:
        """Fields the caller supplied, keyed by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class RiskFilters(_CamelModel):
    """View-selection state. ``all`` disables a predicate."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    search: str = ""
    category: str = "all"
    status: Literal["all"] | RiskStatus = "all"
    severity: Literal["all"] | RiskSeverity = "all"


DEFAULT_FILTERS = RiskFilters()


class RiskStats(_CamelModel):
    """Aggregate snapshot, always recomputed from the canonical collection."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    total: int = 0
    by_status: dict[RiskStatus, int] = Field(
        default_factory=lambda: {status: 0 for status in RiskStatus}
    )
    by_severity: dict[RiskSeverity, int] = Field(
        default_factory=lambda: {severity: 0 for severity in RiskSeverity}
    )
    average_score: float = 0.0
    max_score: int = 0
    updated_at: datetime

    @field_serializer("updated_at")
    def _serialize_timestamp(self, value: datetime) -> str:
        return to_iso(value)


class RiskSnapshot(_CamelModel):
    """Everything a view needs to render, captured after one recomputation."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    filters: RiskFilters
    risks: tuple[Risk, ...]
    filtered_risks: tuple[Risk, ...]
    categories: tuple[str, ...]
    stats: RiskStats


class MatrixCell(_CamelModel):
    """One probability/impact cell of the risk matrix."""

    probability: int
    impact: int
    risk_ids: list[str] = Field(default_factory=list)
    count: int = 0
    severity: RiskSeverity | None = None


class CSVImportResult(BaseModel):
    """Outcome of parsing a CSV payload."""

    risks: list[Risk] = Field(default_factory=list)
    rejected_rows: int = 0
    injection_detected: bool = False

    @property
    def imported(self) -> int:
        return len(self.risks)
