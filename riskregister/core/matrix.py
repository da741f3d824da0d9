"""
Risk Matrix — places risks on the 5×5 probability/impact grid.

Rows run from probability 5 down to 1, columns from impact 1 up to 5. A cell's
severity is that of the highest score among its risks.
"""

from __future__ import annotations

from collections.abc import Iterable

from riskregister.core.scoring import SCALE_MAX, SCALE_MIN, get_risk_severity
from riskregister.models.risk_models import MatrixCell, Risk

PROBABILITY_SCALE = list(range(SCALE_MAX, SCALE_MIN - 1, -1))
IMPACT_SCALE = list(range(SCALE_MIN, SCALE_MAX + 1))


def build_risk_matrix(risks: Iterable[Risk]) -> list[list[MatrixCell]]:
    """Build the grid of cells; empty cells have no severity."""
    cells: dict[tuple[int, int], list[Risk]] = {}
    for risk in risks:
        cells.setdefault((risk.probability, risk.impact), []).append(risk)

    grid: list[list[MatrixCell]] = []
    for probability in PROBABILITY_SCALE:
        row: list[MatrixCell] = []
        for impact in IMPACT_SCALE:
            members = cells.get((probability, impact), [])
            severity = None
            if members:
                severity = get_risk_severity(max(r.risk_score for r in members))
            row.append(
                MatrixCell(
                    probability=probability,
                    impact=impact,
                    risk_ids=[r.id for r in members],
                    count=len(members),
                    severity=severity,
                )
            )
        grid.append(row)
    return grid
