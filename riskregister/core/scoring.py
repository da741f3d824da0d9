"""
Risk Scoring — probability × impact score and severity classification.

Score = clamp(probability, 1, 5) × clamp(impact, 1, 5), range 1-25.

Severity thresholds (the single authoritative set, used by the filter
engine, the stats aggregator and the matrix):
    score <= 5        → low
    6 <= score <= 12  → medium
    score > 12        → high
"""

from __future__ import annotations

import math

from riskregister.models.enums import RiskSeverity

SCALE_MIN = 1
SCALE_MAX = 5

LOW_SEVERITY_MAX = 5
MEDIUM_SEVERITY_MAX = 12


def _clamp(value: float) -> float:
    if isinstance(value, float) and math.isnan(value):
        return SCALE_MIN
    return min(max(value, SCALE_MIN), SCALE_MAX)


def clamp_score(value: float) -> int:
    """Clamp a probability/impact rating to the 1-5 scale and round half-up."""
    return int(math.floor(_clamp(value) + 0.5))


def calculate_risk_score(probability: float, impact: float) -> float:
    """
    Compute the risk score for a probability/impact pair.

    Each input is clamped independently; rounding is the caller's job.
    Never fails.
    """
    return _clamp(probability) * _clamp(impact)


def get_risk_severity(score: float) -> RiskSeverity:
    """Map a risk score to its severity tier."""
    if score <= LOW_SEVERITY_MAX:
        return RiskSeverity.LOW
    if score <= MEDIUM_SEVERITY_MAX:
        return RiskSeverity.MEDIUM
    return RiskSeverity.HIGH
