"""
Risk Enumerations — lifecycle status and severity tier.
"""

from __future__ import annotations

from enum import Enum


class RiskStatus(str, Enum):
    OPEN = "open"
    MITIGATED = "mitigated"
    CLOSED = "closed"


class RiskSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
