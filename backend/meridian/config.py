"""
Centralized constants and environment settings for MERIDIAN.

Import limits and thresholds from here instead of redefining them.
Runtime knobs are read from MERIDIAN_* environment variables.
"""
import os
from dataclasses import dataclass
from functools import lru_cache

# Oracle per-job hard cap and the submission bound kept safely below it
ORACLE_HARD_CAP = 50_000
MAX_PAYEES_PER_CHUNK = 45_000

# Name standardization
UNKNOWN_PAYEE = "UNKNOWN"
UNKNOWN_ROW_PREFIX = "Unknown_Row_"
MOST_COMMON_STEPS_LIMIT = 10

# Classification defaults applied when a result is missing or failed
DEFAULT_CLASSIFICATION = "Individual"
DEFAULT_CONFIDENCE = 0
DEFAULT_REASONING = "No classification result"
FAILED_TIER = "Failed"

# Review flags on mapped rows
QUALITY_HIGH_MIN = 90
QUALITY_MEDIUM_MIN = 70
REVIEW_CONFIDENCE_BELOW = 85

# Duplicate detection
DUPLICATE_HIGH_THRESHOLD = 85.0
DUPLICATE_LOW_THRESHOLD = 60.0
SAME_ENTITY_FLOOR = 90.0
AI_FAILURE_CONFIDENCE = 50
AI_CALL_DELAY_SECONDS = 0.1
EXHAUSTIVE_PAIR_LIMIT = 1_000

# Cooperative chunking: (exclusive upper bound on item count, chunk size)
ADAPTIVE_CHUNK_SIZES = [
    (1_000, 50),
    (10_000, 100),
]
ADAPTIVE_CHUNK_SIZE_MAX = 250
ADAPTIVE_CHUNK_ALL_BELOW = 100

STANDARDIZE_CHUNK_SIZE = 100
STANDARDIZE_CHUNK_SIZE_LARGE = 200
RECONCILE_CHUNK_SIZE = 250
RECONCILE_CHUNK_SIZE_LARGE = 500
LARGE_INPUT_ROWS = 10_000
YIELD_DELAY_SECONDS = 0.010
YIELD_DELAY_SECONDS_LARGE = 0.015
YIELD_DELAY_LARGE_ROWS = 5_000


def get_quality_level(confidence: float) -> str:
    """Return the processing quality label for a classification confidence.

    Args:
        confidence: Classification confidence (0-100)
    """
    if confidence >= QUALITY_HIGH_MIN:
        return "High"
    if confidence >= QUALITY_MEDIUM_MIN:
        return "Medium"
    return "Low"


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class MeridianSettings:
    log_level: str = "INFO"
    log_format: str = "auto"
    classification_chunk_size: int = MAX_PAYEES_PER_CHUNK
    classification_concurrency: int = 2
    oracle_timeout_seconds: float = 120.0
    oracle_max_retries: int = 2
    oracle_backoff_seconds: float = 1.0
    batch_poll_interval_seconds: float = 30.0
    batch_max_wait_seconds: float = 24 * 3600.0
    ai_judgment_enabled: bool = True
    ai_timeout_seconds: float = 30.0
    ai_call_delay_seconds: float = AI_CALL_DELAY_SECONDS
    duplicate_high_threshold: float = DUPLICATE_HIGH_THRESHOLD
    duplicate_low_threshold: float = DUPLICATE_LOW_THRESHOLD
    cache_ttl_seconds: int = 3600
    cache_maxsize: int = 100_000
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    @classmethod
    def from_env(cls) -> "MeridianSettings":
        """Build settings from MERIDIAN_* environment variables."""
        env = os.environ.get
        return cls(
            log_level=env("MERIDIAN_LOG_LEVEL", "INFO"),
            log_format=env("MERIDIAN_LOG_FORMAT", "auto"),
            classification_chunk_size=int(env("MERIDIAN_CLASSIFICATION_CHUNK_SIZE", str(MAX_PAYEES_PER_CHUNK))),
            classification_concurrency=int(env("MERIDIAN_CLASSIFICATION_CONCURRENCY", "2")),
            oracle_timeout_seconds=float(env("MERIDIAN_ORACLE_TIMEOUT_SECONDS", "120")),
            oracle_max_retries=int(env("MERIDIAN_ORACLE_MAX_RETRIES", "2")),
            oracle_backoff_seconds=float(env("MERIDIAN_ORACLE_BACKOFF_SECONDS", "1.0")),
            batch_poll_interval_seconds=float(env("MERIDIAN_BATCH_POLL_INTERVAL_SECONDS", "30")),
            batch_max_wait_seconds=float(env("MERIDIAN_BATCH_MAX_WAIT_SECONDS", str(24 * 3600))),
            ai_judgment_enabled=_env_bool("MERIDIAN_AI_JUDGMENT_ENABLED", True),
            ai_timeout_seconds=float(env("MERIDIAN_AI_TIMEOUT_SECONDS", "30")),
            ai_call_delay_seconds=float(env("MERIDIAN_AI_CALL_DELAY_SECONDS", str(AI_CALL_DELAY_SECONDS))),
            duplicate_high_threshold=float(env("MERIDIAN_DUPLICATE_HIGH_THRESHOLD", str(DUPLICATE_HIGH_THRESHOLD))),
            duplicate_low_threshold=float(env("MERIDIAN_DUPLICATE_LOW_THRESHOLD", str(DUPLICATE_LOW_THRESHOLD))),
            cache_ttl_seconds=int(env("MERIDIAN_CACHE_TTL_SECONDS", "3600")),
            cache_maxsize=int(env("MERIDIAN_CACHE_MAXSIZE", "100000")),
            openai_api_key=env("OPENAI_API_KEY", ""),
            openai_model=env("MERIDIAN_OPENAI_MODEL", "gpt-4o-mini"),
        )


@lru_cache(maxsize=1)
def get_settings() -> MeridianSettings:
    """Process-wide settings, read once from the environment."""
    return MeridianSettings.from_env()
