"""
Filter Engine — derives the filtered view from a risk collection.

All active predicates must hold (logical AND). Output preserves input order.
"""

from __future__ import annotations

from collections.abc import Iterable

from riskregister.core.scoring import get_risk_severity
from riskregister.models.risk_models import Risk, RiskFilters

ALL = "all"


def _matches(risk: Risk, filters: RiskFilters, search: str, category: str) -> bool:
    if search and search not in risk.title.lower() and search not in risk.description.lower():
        return False
    if category != ALL and risk.category.lower() != category:
        return False
    if filters.status != ALL and risk.status != filters.status:
        return False
    if filters.severity != ALL and get_risk_severity(risk.risk_score) != filters.severity:
        return False
    return True


def filter_risks(risks: Iterable[Risk], filters: RiskFilters) -> list[Risk]:
    """
    Return the risks matching every active filter.

    ``search`` is a case-insensitive substring match on title or description,
    ``category`` a case-insensitive exact match; ``status`` and ``severity``
    match exactly. A value of ``all`` (or an empty search) disables a filter.
    """
    search = filters.search.lower()
    category = ALL if filters.category == ALL else filters.category.lower()
    return [risk for risk in risks if _matches(risk, filters, search, category)]
