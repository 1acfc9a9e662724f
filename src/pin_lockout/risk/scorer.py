"""Risk Scorer - behavioural risk score for a pending attempt.

Signals (additive, capped at 100):
- rapid attempts      +30  more than 2 attempts in the last 60s
- device diversity    +25  more than 2 distinct devices in the last hour
- address diversity   +20  more than 1 distinct source address in the last hour
- off-hours           +15  local hour before 06:00 or after 22:59
- brute-force pattern +35  3+ consecutive gaps under 5s
"""

from datetime import datetime, timedelta, tzinfo
from typing import Dict, List, Optional, Sequence

from pin_lockout.attempts.store import AttemptStore
from pin_lockout.common.constants import RiskConstants
from pin_lockout.core.types import RiskLevel
from pin_lockout.schemas import AttemptRecord, RiskFactors


RISK_MULTIPLIERS: Dict[RiskLevel, float] = {
    RiskLevel.LOW: 1.0,
    RiskLevel.MEDIUM: 1.5,
    RiskLevel.HIGH: 2.0,
    RiskLevel.CRITICAL: 3.0,
}


def classify_risk_level(score: int, failed_in_window: int) -> RiskLevel:
    """Map an attempt's score and the failure count to a risk level."""
    if score >= RiskConstants.CRITICAL[0] or failed_in_window >= RiskConstants.CRITICAL[1]:
        return RiskLevel.CRITICAL
    if score >= RiskConstants.HIGH[0] or failed_in_window >= RiskConstants.HIGH[1]:
        return RiskLevel.HIGH
    if score >= RiskConstants.MEDIUM[0] or failed_in_window >= RiskConstants.MEDIUM[1]:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def risk_multiplier(level: RiskLevel) -> float:
    return RISK_MULTIPLIERS.get(level, 1.0)


def has_brute_force_pattern(attempts: Sequence[AttemptRecord]) -> bool:
    """True if some run of consecutive inter-attempt gaps are all short."""
    if len(attempts) < RiskConstants.PATTERN_MIN_GAPS + 1:
        return False
    
    run = 0
    for previous, current in zip(attempts, attempts[1:]):
        gap = (current.timestamp - previous.timestamp).total_seconds()
        if gap < RiskConstants.PATTERN_GAP_SECONDS:
            run += 1
            if run >= RiskConstants.PATTERN_MIN_GAPS:
                return True
        else:
            run = 0
    return False


class RiskScorer:
    """Scores a pending attempt against the principal's recent history."""
    
    WINDOW = timedelta(seconds=RiskConstants.SCORING_WINDOW_SECONDS)
    RAPID_WINDOW = timedelta(seconds=RiskConstants.RAPID_WINDOW_SECONDS)
    
    def __init__(self, attempts: AttemptStore, timezone: Optional[tzinfo] = None):
        """
        Args:
            attempts: History to score against
            timezone: Zone for off-hours detection; host local time if None
        """
        self.attempts = attempts
        self.timezone = timezone
    
    def _local_hour(self, timestamp: datetime) -> int:
        if self.timezone is not None:
            return timestamp.astimezone(self.timezone).hour
        return timestamp.astimezone().hour
    
    def assess(self, principal_id: str, timestamp: datetime) -> RiskFactors:
        """Evaluate each signal for an attempt at `timestamp`."""
        recent: List[AttemptRecord] = self.attempts.recent_attempts(
            principal_id, self.WINDOW, now=timestamp
        )
        
        rapid = [a for a in recent if timestamp - a.timestamp < self.RAPID_WINDOW]
        devices = {a.device_id for a in recent}
        addresses = {a.source_address for a in recent}
        hour = self._local_hour(timestamp)
        
        factors = RiskFactors(
            rapid_attempts=len(rapid) > RiskConstants.RAPID_ATTEMPT_THRESHOLD,
            multiple_devices=len(devices) > RiskConstants.DEVICE_DIVERSITY_THRESHOLD,
            multiple_addresses=len(addresses) > RiskConstants.ADDRESS_DIVERSITY_THRESHOLD,
            off_hours=(
                hour < RiskConstants.OFF_HOURS_START or hour > RiskConstants.OFF_HOURS_END
            ),
            pattern_detected=has_brute_force_pattern(recent),
        )
        
        score = 0
        if factors.rapid_attempts:
            score += RiskConstants.RAPID_ATTEMPT_WEIGHT
        if factors.multiple_devices:
            score += RiskConstants.DEVICE_DIVERSITY_WEIGHT
        if factors.multiple_addresses:
            score += RiskConstants.ADDRESS_DIVERSITY_WEIGHT
        if factors.off_hours:
            score += RiskConstants.OFF_HOURS_WEIGHT
        if factors.pattern_detected:
            score += RiskConstants.PATTERN_WEIGHT
        
        return factors.model_copy(update={"score": min(score, RiskConstants.MAX_SCORE)})
    
    def score(self, principal_id: str, timestamp: datetime) -> int:
        """Risk score in [0, 100] for an attempt at `timestamp`."""
        return self.assess(principal_id, timestamp).score
