"""
Demo Data — example risks inserted into an empty register.
"""

from __future__ import annotations

from riskregister.models.enums import RiskStatus
from riskregister.models.risk_models import RiskInput

DEMO_RISKS: tuple[RiskInput, ...] = (
    RiskInput(
        title="Payment processor outage",
        description="Primary payment gateway has a single point of failure with no redundancy.",
        probability=3,
        impact=5,
        category="Operational",
        status=RiskStatus.OPEN,
        mitigation_plan="Add backup PSP integration and automated smoke tests.",
    ),
    RiskInput(
        title="Vendor compliance gap",
        description="Key vendor contract missing updated DPA for latest regulation.",
        probability=2,
        impact=4,
        category="Compliance",
        status=RiskStatus.MITIGATED,
        mitigation_plan="Legal review scheduled and updated contract template drafted.",
    ),
    RiskInput(
        title="Phishing vulnerability",
        description="Limited phishing training leading to increased credential attacks.",
        probability=4,
        impact=3,
        category="Security",
        status=RiskStatus.OPEN,
        mitigation_plan="Roll out quarterly training and MFA hardening.",
    ),
)
