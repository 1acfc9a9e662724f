"""Risk scoring."""

from pin_lockout.risk.scorer import (
    RISK_MULTIPLIERS,
    RiskScorer,
    classify_risk_level,
    has_brute_force_pattern,
    risk_multiplier,
)

__all__ = [
    "RISK_MULTIPLIERS",
    "RiskScorer",
    "classify_risk_level",
    "has_brute_force_pattern",
    "risk_multiplier",
]
