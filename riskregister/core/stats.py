"""
Stats Aggregator — single-pass summary over a risk collection.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime

from riskregister.core.scoring import get_risk_severity
from riskregister.core.timestamps import utc_now
from riskregister.models.enums import RiskSeverity, RiskStatus
from riskregister.models.risk_models import Risk, RiskStats


def compute_risk_stats(
    risks: Sequence[Risk],
    clock: Callable[[], datetime] = utc_now,
) -> RiskStats:
    """
    Compute totals, status/severity tallies, average and max score.

    The average is rounded to 2 decimals; an empty collection yields zeros.
    Always a full recomputation, never an incremental patch.
    """
    by_status = {status: 0 for status in RiskStatus}
    by_severity = {severity: 0 for severity in RiskSeverity}
    total_score = 0
    max_score = 0

    for risk in risks:
        by_status[risk.status] += 1
        by_severity[get_risk_severity(risk.risk_score)] += 1
        total_score += risk.risk_score
        max_score = max(max_score, risk.risk_score)

    average = round(total_score / len(risks), 2) if risks else 0.0

    return RiskStats(
        total=len(risks),
        by_status=by_status,
        by_severity=by_severity,
        average_score=average,
        max_score=max_score,
        updated_at=clock(),
    )
