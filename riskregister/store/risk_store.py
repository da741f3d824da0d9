"""
Risk Store — owns the canonical risk collection and its derived views.

Every mutation follows the same sequence:
    sanitize input → mutate canonical collection → recompute filtered view
    and stats → notify subscribers

Derived state is recomputed synchronously inside the mutating call, so a
reader never sees stats or a filtered view that lag behind the collection.
The store knows nothing about persistence; see PersistedRiskStore.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from riskregister.config import settings
from riskregister.core.csv_codec import export_csv, parse_csv
from riskregister.core.filters import filter_risks
from riskregister.core.sanitization import sanitize_risk_input
from riskregister.core.stats import compute_risk_stats
from riskregister.core.timestamps import utc_now
from riskregister.models.enums import RiskStatus
from riskregister.models.risk_models import (
    DEFAULT_FILTERS,
    CSVImportResult,
    Risk,
    RiskFilters,
    RiskInput,
    RiskSnapshot,
    RiskStats,
    RiskUpdate,
)
from riskregister.store.demo_data import DEMO_RISKS

logger = logging.getLogger("riskregister.store")

Listener = Callable[[RiskSnapshot], None]

_REQUIRED_TEXT = ("title", "description")


def generate_risk_id() -> str:
    """Opaque 12-character id."""
    return uuid.uuid4().hex[:12]


class RiskStore:
    """
    In-memory risk register.

    Usage:
        store = RiskStore()
        unsubscribe = store.subscribe(render)
        risk = store.add_risk({"title": "...", "description": "...",
                               "probability": 3, "impact": 4})
        store.set_filters(severity="medium")
    """

    def __init__(
        self,
        default_categories: Iterable[str] | None = None,
        id_factory: Callable[[], str] = generate_risk_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        categories = list(
            settings.default_categories if default_categories is None else default_categories
        )
        if not categories:
            raise ValueError("At least one default category is required")

        self._default_categories = tuple(categories)
        self._id_factory = id_factory
        self._clock = clock
        self._listeners: list[Listener] = []

        self._risks: list[Risk] = []
        self._categories: list[str] = list(categories)
        self._filters: RiskFilters = DEFAULT_FILTERS
        self._filtered: list[Risk] = []
        self._stats: RiskStats = compute_risk_stats([], clock)

    # ── Read access ──

    @property
    def risks(self) -> tuple[Risk, ...]:
        """Canonical collection, most recently created first."""
        return tuple(self._risks)

    @property
    def filtered_risks(self) -> tuple[Risk, ...]:
        return tuple(self._filtered)

    @property
    def filters(self) -> RiskFilters:
        return self._filters

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._categories)

    @property
    def stats(self) -> RiskStats:
        return self._stats

    @property
    def default_category(self) -> str:
        return self._default_categories[0]

    def get_risk(self, risk_id: str) -> Risk | None:
        for risk in self._risks:
            if risk.id == risk_id:
                return risk
        return None

    def snapshot(self) -> RiskSnapshot:
        return RiskSnapshot(
            filters=self._filters,
            risks=tuple(self._risks),
            filtered_risks=tuple(self._filtered),
            categories=tuple(self._categories),
            stats=self._stats,
        )

    # ── Subscriptions ──

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with a fresh snapshot after every change.

        Returns a function that removes the listener; calling it twice is harmless.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Store listener failed")

    def _commit(self, risks: list[Risk]) -> None:
        self._risks = risks
        self._filtered = filter_risks(risks, self._filters)
        self._stats = compute_risk_stats(risks, self._clock)
        self._notify()

    # ── Risk operations ──

    def _build_risk(self, data: RiskInput) -> Risk:
        clean = sanitize_risk_input(data.model_dump())
        for field in _REQUIRED_TEXT:
            if not clean[field]:
                logger.warning(f"Risk {field} is empty after sanitization")
        now = self._clock()
        return Risk(
            id=self._id_factory(),
            title=clean["title"],
            description=clean["description"],
            probability=clean["probability"],
            impact=clean["impact"],
            category=clean["category"] or self.default_category,
            status=clean["status"] or RiskStatus.OPEN,
            mitigation_plan=clean["mitigation_plan"] or "",
            creation_date=now,
            last_modified=now,
        )

    def add_risk(self, data: RiskInput | Mapping[str, Any]) -> Risk:
        """Create a risk and prepend it to the collection."""
        if not isinstance(data, RiskInput):
            data = RiskInput.model_validate(data)
        risk = self._build_risk(data)
        self._commit([risk, *self._risks])
        logger.info(f"Risk added: {risk.id} (score {risk.risk_score})")
        return risk

    def update_risk(
        self, risk_id: str, updates: RiskUpdate | Mapping[str, Any]
    ) -> Risk | None:
        """
        Merge the provided fields into an existing risk.

        Fields the caller did not provide keep their values. An explicit
        ``None`` counts as not provided, an empty mitigation plan clears it and
        an empty category resets it to the default. Returns None, leaving the
        store untouched, when the id is unknown.
        """
        if not isinstance(updates, RiskUpdate):
            updates = RiskUpdate.model_validate(updates)

        index = next((i for i, r in enumerate(self._risks) if r.id == risk_id), None)
        if index is None:
            logger.info(f"Update ignored: no risk with id {risk_id}")
            return None

        current = self._risks[index]
        fields = {name: getattr(current, name) for name in Risk.model_fields}
        for name, value in sanitize_risk_input(updates.provided()).items():
            if value is None:
                continue
            if name in _REQUIRED_TEXT and not value:
                logger.warning(f"Ignoring update that would leave risk {name} empty")
                continue
            if name == "category" and not value:
                value = self.default_category
            fields[name] = value
        fields["last_modified"] = self._clock()

        updated = Risk.model_validate(fields)
        risks = list(self._risks)
        risks[index] = updated
        self._commit(risks)
        return updated

    def delete_risk(self, risk_id: str) -> bool:
        """Remove a risk. Unknown ids are a no-op; returns whether anything was removed."""
        remaining = [risk for risk in self._risks if risk.id != risk_id]
        if len(remaining) == len(self._risks):
            return False
        self._commit(remaining)
        logger.info(f"Risk deleted: {risk_id}")
        return True

    def bulk_import(self, risks: Iterable[Risk]) -> int:
        """Prepend already-built records, keeping their order."""
        incoming = list(risks)
        if incoming:
            self._commit([*incoming, *self._risks])
        return len(incoming)

    def seed_demo_data(self) -> int:
        """Insert the demo risks, only into an empty register."""
        if self._risks:
            return 0
        return self.bulk_import(self._build_risk(item) for item in DEMO_RISKS)

    # ── Filters and categories ──

    def set_filters(
        self, updates: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> RiskFilters:
        """
        Merge filter changes and recompute the filtered view.

        Stats do not depend on filters and are left alone. Unknown filter
        names raise pydantic.ValidationError.
        """
        merged = {**self._filters.model_dump(), **dict(updates or {}), **kwargs}
        self._filters = RiskFilters.model_validate(merged)
        self._filtered = filter_risks(self._risks, self._filters)
        self._notify()
        return self._filters

    def add_category(self, name: str) -> bool:
        """Append a category; blank or already-known names are ignored."""
        category = sanitize_risk_input({"category": name})["category"]
        if not isinstance(category, str) or not category or category in self._categories:
            return False
        self._categories.append(category)
        self._notify()
        return True

    # ── CSV ──

    def export_to_csv(self) -> str:
        return export_csv(self._risks)

    def import_csv(self, csv_text: str) -> CSVImportResult:
        """Parse CSV and prepend the imported risks, returning full diagnostics."""
        result = parse_csv(
            csv_text,
            default_category=self.default_category,
            id_factory=self._id_factory,
            clock=self._clock,
            existing_ids=[risk.id for risk in self._risks],
        )
        if result.injection_detected:
            logger.warning("CSV import aborted: nothing imported")
            return result
        if result.risks:
            self._commit([*result.risks, *self._risks])
            logger.info(f"Imported {result.imported} risk(s) from CSV")
        return result

    def import_from_csv(self, csv_text: str) -> int:
        """Import CSV, returning only the number of risks imported."""
        return self.import_csv(csv_text).imported

    # ── State restore ──

    def load_state(
        self,
        risks: Iterable[Risk],
        categories: Iterable[str] | None = None,
        filters: RiskFilters | None = None,
    ) -> None:
        """Replace the whole state; derived views are recomputed, never restored."""
        self._categories = list(categories) if categories else list(self._default_categories)
        self._filters = filters or DEFAULT_FILTERS
        self._commit(list(risks))
