"""
Value types for duplicate detection: input records, scored pairs,
AI verdicts, groups and the overall result.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, runtime_checkable

from ..config import (
    AI_CALL_DELAY_SECONDS,
    DUPLICATE_HIGH_THRESHOLD,
    DUPLICATE_LOW_THRESHOLD,
    EXHAUSTIVE_PAIR_LIMIT,
    SAME_ENTITY_FLOOR,
    MeridianSettings,
)
from ..errors import InputValidationError
from ..resilience import ResiliencePolicy
from ..similarity import DEFAULT_WEIGHTS, SimilarityScores

TIER_HIGH = "High"
TIER_LOW = "Low"
TIER_AMBIGUOUS = "Ambiguous"

METHOD_HIGH = "Algorithmic-High"
METHOD_LOW = "Algorithmic-Low"
METHOD_AI = "AI Judgment"


@dataclass(frozen=True)
class DuplicateRecord:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DuplicateRecord":
        """Accepts {"id", "name"} or {"payee_id", "payee_name"}."""
        record_id = data.get("id", data.get("payee_id"))
        name = data.get("name", data.get("payee_name"))
        if record_id is None or not isinstance(name, str):
            raise InputValidationError(
                "Duplicate detection records need an id and a string name",
                details={"record": dict(data)},
            )
        return cls(id=str(record_id), name=name)


@dataclass(frozen=True)
class AIJudgment:
    is_duplicate: bool
    confidence: float
    reasoning: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AIJudgment":
        """Parse a judge payload, clamping confidence to 0-100."""
        try:
            confidence = float(data.get("confidence", 0))
        except (TypeError, ValueError):
            confidence = 0.0
        return cls(
            is_duplicate=bool(data.get("is_duplicate", False)),
            confidence=max(0.0, min(100.0, confidence)),
            reasoning=str(data.get("reasoning") or "No reasoning provided"),
        )


@runtime_checkable
class DuplicateJudge(Protocol):
    """Decides whether two raw payee names refer to the same entity."""

    async def judge(self, name_a: str, name_b: str) -> "AIJudgment":
        ...


@dataclass(frozen=True)
class DuplicateDetectionConfig:
    high_threshold: float = DUPLICATE_HIGH_THRESHOLD
    low_threshold: float = DUPLICATE_LOW_THRESHOLD
    enable_ai_judgment: bool = True
    weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    same_entity_floor: float = SAME_ENTITY_FLOOR
    exhaustive_pair_limit: int = EXHAUSTIVE_PAIR_LIMIT
    ai_call_delay_seconds: float = AI_CALL_DELAY_SECONDS
    ai_policy: ResiliencePolicy = field(
        default_factory=lambda: ResiliencePolicy(name="ai_judge", timeout_seconds=30.0, max_retries=1)
    )

    def __post_init__(self):
        if not 0 <= self.low_threshold < self.high_threshold <= 100:
            raise InputValidationError(
                "Thresholds must satisfy 0 <= low < high <= 100",
                details={"low_threshold": self.low_threshold, "high_threshold": self.high_threshold},
            )

    @classmethod
    def from_settings(cls, settings: MeridianSettings) -> "DuplicateDetectionConfig":
        return cls(
            high_threshold=settings.duplicate_high_threshold,
            low_threshold=settings.duplicate_low_threshold,
            enable_ai_judgment=settings.ai_judgment_enabled,
            ai_call_delay_seconds=settings.ai_call_delay_seconds,
            ai_policy=ResiliencePolicy(
                name="ai_judge",
                timeout_seconds=settings.ai_timeout_seconds,
                max_retries=1,
                backoff_seconds=settings.oracle_backoff_seconds,
            ),
        )


@dataclass
class DuplicatePair:
    """A scored candidate pair and, once decided, its verdict."""
    record_a: DuplicateRecord
    record_b: DuplicateRecord
    scores: SimilarityScores
    confidence_tier: str
    is_duplicate: bool = False
    judgement_method: str = METHOD_LOW
    ai_judgment: AIJudgment | None = None
    ai_error: str | None = None

    @property
    def similarity_score(self) -> float:
        return self.scores.composite

    def to_dict(self) -> dict:
        return {
            "record_a": {"id": self.record_a.id, "name": self.record_a.name},
            "record_b": {"id": self.record_b.id, "name": self.record_b.name},
            "similarity_score": self.similarity_score,
            "similarity_scores": self.scores.to_dict(),
            "confidence_tier": self.confidence_tier,
            "is_duplicate": self.is_duplicate,
            "judgement_method": self.judgement_method,
            "ai_judgment": (
                {
                    "is_duplicate": self.ai_judgment.is_duplicate,
                    "confidence": self.ai_judgment.confidence,
                    "reasoning": self.ai_judgment.reasoning,
                }
                if self.ai_judgment else None
            ),
            "ai_error": self.ai_error,
        }


@dataclass(frozen=True)
class ProcessedRecord:
    id: str
    name: str
    is_potential_duplicate: bool
    duplicate_of_id: str | None
    duplicate_of_name: str | None
    final_duplicate_score: float
    judgement_method: str
    ai_judgement_is_duplicate: bool | None
    ai_judgement_reasoning: str | None
    duplicate_group_id: str


@dataclass(frozen=True)
class GroupMember:
    id: str
    name: str
    judgement_method: str
    score: float


@dataclass(frozen=True)
class DuplicateGroup:
    group_id: str
    canonical_id: str
    canonical_name: str
    members: tuple[GroupMember, ...]
    average_score: float

    @property
    def member_ids(self) -> set[str]:
        return {m.id for m in self.members}


@dataclass(frozen=True)
class DuplicateDetectionStatistics:
    total_processed: int
    duplicates_found: int
    high_confidence_matches: int
    low_confidence_matches: int
    ai_judgments_made: int
    ai_judgment_failures: int
    pairs_evaluated: int
    processing_time_ms: float


@dataclass(frozen=True)
class DuplicateDetectionResult:
    processed_records: tuple[ProcessedRecord, ...]
    duplicate_groups: tuple[DuplicateGroup, ...]
    pairs: tuple[DuplicatePair, ...]
    statistics: DuplicateDetectionStatistics

    def records_by_name(self) -> dict[str, ProcessedRecord]:
        return {record.name.strip(): record for record in self.processed_records}

    def to_dict(self) -> dict:
        return {
            "processed_records": [vars_of(r) for r in self.processed_records],
            "duplicate_groups": [
                {
                    "group_id": g.group_id,
                    "canonical_id": g.canonical_id,
                    "canonical_name": g.canonical_name,
                    "average_score": g.average_score,
                    "members": [vars_of(m) for m in g.members],
                }
                for g in self.duplicate_groups
            ],
            "pairs": [p.to_dict() for p in self.pairs],
            "statistics": vars_of(self.statistics),
        }


def vars_of(obj) -> dict:
    return {name: getattr(obj, name) for name in obj.__dataclass_fields__}
