"""Centralized constants for the lockout engine."""


# ===== ATTEMPT HISTORY =====
class HistoryConstants:
    RAW_RETENTION_SECONDS = 24 * 60 * 60        # per-principal history kept on write
    AGGREGATE_RETENTION_SECONDS = 7 * 24 * 60 * 60
    INACTIVE_PRINCIPAL_SECONDS = 7 * 24 * 60 * 60
    CLEANUP_INTERVAL_SECONDS = 60 * 60
    STATISTICS_WINDOW_SECONDS = 24 * 60 * 60


# ===== RISK SCORING =====
class RiskConstants:
    SCORING_WINDOW_SECONDS = 60 * 60
    RAPID_WINDOW_SECONDS = 60
    RAPID_ATTEMPT_THRESHOLD = 2
    RAPID_ATTEMPT_WEIGHT = 30
    DEVICE_DIVERSITY_THRESHOLD = 2
    DEVICE_DIVERSITY_WEIGHT = 25
    ADDRESS_DIVERSITY_THRESHOLD = 1
    ADDRESS_DIVERSITY_WEIGHT = 20
    OFF_HOURS_START = 6   # hour < start is off-hours
    OFF_HOURS_END = 22    # hour > end is off-hours
    OFF_HOURS_WEIGHT = 15
    PATTERN_GAP_SECONDS = 5
    PATTERN_MIN_GAPS = 3
    PATTERN_WEIGHT = 35
    MAX_SCORE = 100

    # Level thresholds: (score, failed attempts)
    CRITICAL = (80, 10)
    HIGH = (60, 7)
    MEDIUM = (30, 4)

    # Failed attempts at or above this score count toward progressive lockout
    HIGH_RISK_ATTEMPT_SCORE = 50


# ===== AUDIT =====
class AuditConstants:
    QUEUE_SIZE = 10000
    FLUSH_TIMEOUT_SECONDS = 5.0
    QUEUE_GET_TIMEOUT = 1.0
    HASH_ALGORITHM = "sha256"
    SOURCE = "lockout_system"


# ===== PERSISTENCE =====
class PersistenceConstants:
    STATE_KEY_PREFIX = "lockout_state_"
    ATTEMPTS_KEY_PREFIX = "lockout_attempts_"
    QUEUE_SIZE = 10000
    FLUSH_TIMEOUT_SECONDS = 5.0
    QUEUE_GET_TIMEOUT = 1.0


# ===== VALIDATION =====
class ValidationConstants:
    MAX_IDENTIFIER_LENGTH = 128
    IDENTIFIER_PATTERN = r"^[A-Za-z0-9_.:@-]+$"
    MAX_SOURCE_ADDRESS_LENGTH = 64
    MAX_ERROR_CODE_LENGTH = 64
