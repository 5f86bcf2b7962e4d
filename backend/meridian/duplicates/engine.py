"""
Duplicate Tiering Engine.

Scores candidate pairs of payee names, buckets them into High / Low /
Ambiguous tiers, asks the AI judge about Ambiguous pairs only, and unions
duplicate pairs into groups.
"""

import itertools
import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

import structlog
from aiolimiter import AsyncLimiter

from ..blocking import create_payee_blocking
from ..config import AI_FAILURE_CONFIDENCE
from ..errors import InputValidationError, OracleCallFailure
from ..resilience import with_resilience
from ..scheduling import CancellationToken, yield_point
from ..similarity import PayeeMatcher
from .grouping import build_duplicate_groups
from .models import (
    METHOD_AI,
    METHOD_HIGH,
    METHOD_LOW,
    TIER_AMBIGUOUS,
    TIER_HIGH,
    TIER_LOW,
    AIJudgment,
    DuplicateDetectionConfig,
    DuplicateDetectionResult,
    DuplicateDetectionStatistics,
    DuplicateGroup,
    DuplicateJudge,
    DuplicatePair,
    DuplicateRecord,
    ProcessedRecord,
)
from .normalize import ComparisonKey, build_comparison_key

logger = structlog.get_logger("meridian.duplicates")

SCORING_YIELD_EVERY = 5_000


def classify_tier(score: float, high_threshold: float, low_threshold: float) -> str:
    """Tier a composite score. Monotone in score for fixed thresholds."""
    if score >= high_threshold:
        return TIER_HIGH
    if score <= low_threshold:
        return TIER_LOW
    return TIER_AMBIGUOUS


class DuplicateDetectionEngine:
    """
    Tiered duplicate detection over {id, name} records.

    Example:
        >>> engine = DuplicateDetectionEngine(DuplicateDetectionConfig(enable_ai_judgment=False))
        >>> result = await engine.detect_duplicates([
        ...     {"id": "1", "name": "Christa INC"},
        ...     {"id": "2", "name": "CHRISTA"},
        ... ])
        >>> [m.id for m in result.duplicate_groups[0].members]
        ['1', '2']
    """

    def __init__(
        self,
        config: DuplicateDetectionConfig | None = None,
        judge: DuplicateJudge | None = None,
        limiter: AsyncLimiter | None = None,
    ):
        self.config = config or DuplicateDetectionConfig()
        self.judge = judge
        self.limiter = limiter
        self.matcher = PayeeMatcher(
            weights=dict(self.config.weights),
            same_entity_floor=self.config.same_entity_floor,
        )

    @property
    def ai_enabled(self) -> bool:
        return self.config.enable_ai_judgment and self.judge is not None

    async def detect_duplicates(
        self,
        records: Iterable[DuplicateRecord | Mapping[str, Any]],
        cancel_token: CancellationToken | None = None,
    ) -> DuplicateDetectionResult:
        """
        Run the full detection pass.

        Args:
            records: DuplicateRecord objects or {"id", "name"} dicts
            cancel_token: Checked between scoring slices and AI calls

        Returns:
            DuplicateDetectionResult with processed records, groups and statistics
        """
        start = time.perf_counter()
        recs = self._coerce_records(records)
        keys = [build_comparison_key(r.name) for r in recs]
        phonetic = [self.matcher.phonetic_key(k.key) for k in keys]

        # Step 1: Score and tier candidate pairs; Low pairs are dropped
        pairs: list[DuplicatePair] = []
        evaluated = 0
        low_count = 0
        for i, j in self._candidate_pairs(keys):
            evaluated += 1
            if evaluated % SCORING_YIELD_EVERY == 0:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                await yield_point()

            scores = self.matcher.score(keys[i].key, keys[j].key, phonetic[i], phonetic[j])
            tier = classify_tier(scores.composite, self.config.high_threshold, self.config.low_threshold)
            if tier == TIER_LOW:
                low_count += 1
                continue
            pairs.append(DuplicatePair(
                record_a=recs[i],
                record_b=recs[j],
                scores=scores,
                confidence_tier=tier,
            ))

        # Step 2: High pairs are duplicates outright
        high_count = 0
        ambiguous = []
        for pair in pairs:
            if pair.confidence_tier == TIER_HIGH:
                pair.is_duplicate = True
                pair.judgement_method = METHOD_HIGH
                high_count += 1
            else:
                ambiguous.append(pair)

        # Step 3: Ambiguous pairs go to the judge, one at a time
        ai_made, ai_failed = await self._judge_ambiguous(ambiguous, cancel_token)

        groups = build_duplicate_groups(recs, pairs)
        processed = self._processed_records(recs, pairs, groups)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)

        statistics = DuplicateDetectionStatistics(
            total_processed=len(recs),
            duplicates_found=sum(1 for r in processed if r.is_potential_duplicate),
            high_confidence_matches=high_count,
            low_confidence_matches=low_count,
            ai_judgments_made=ai_made,
            ai_judgment_failures=ai_failed,
            pairs_evaluated=evaluated,
            processing_time_ms=elapsed_ms,
        )
        logger.info(
            "duplicate_detection_complete",
            records=len(recs),
            pairs_evaluated=evaluated,
            high=high_count,
            ambiguous=len(ambiguous),
            groups=len(groups),
            ai_judgments=ai_made,
            ai_failures=ai_failed,
            duration_ms=elapsed_ms,
        )

        return DuplicateDetectionResult(
            processed_records=tuple(processed),
            duplicate_groups=tuple(groups),
            pairs=tuple(pairs),
            statistics=statistics,
        )

    @staticmethod
    def _coerce_records(records: Iterable) -> list[DuplicateRecord]:
        if records is None or isinstance(records, (str, bytes, Mapping)):
            raise InputValidationError("Duplicate detection expects a list of records")

        recs = [r if isinstance(r, DuplicateRecord) else DuplicateRecord.from_dict(r) for r in records]
        seen: set[str] = set()
        for record in recs:
            if record.id in seen:
                raise InputValidationError(
                    f"Duplicate record id: {record.id}", details={"id": record.id},
                )
            seen.add(record.id)
        return recs

    def _candidate_pairs(self, keys: Sequence[ComparisonKey]) -> Iterator[tuple[int, int]]:
        """Index pairs (i < j) worth scoring; empty keys are never compared."""
        usable = [i for i, k in enumerate(keys) if k.key]

        if len(usable) <= self.config.exhaustive_pair_limit:
            yield from itertools.combinations(usable, 2)
            return

        engine = create_payee_blocking()
        blocking_records = [
            {'id': i, 'key': keys[i].key, 'first_token': keys[i].first_token}
            for i in usable
        ]
        candidates = sorted(
            (c.record1_id, c.record2_id) for c in engine.generate_candidates(blocking_records)
        )
        logger.info(
            "blocking_candidates_generated",
            records=len(usable),
            candidates=len(candidates),
        )
        yield from candidates

    async def _judge_ambiguous(
        self,
        ambiguous: list[DuplicatePair],
        cancel_token: CancellationToken | None,
    ) -> tuple[int, int]:
        if not ambiguous:
            return 0, 0

        if not self.ai_enabled:
            for pair in ambiguous:
                pair.is_duplicate = False
                pair.judgement_method = METHOD_LOW
            return 0, 0

        made = failed = 0
        for index, pair in enumerate(ambiguous):
            if index > 0:
                await yield_point(self.config.ai_call_delay_seconds)

            name_a, name_b = pair.record_a.name, pair.record_b.name
            try:
                judgment = await with_resilience(
                    lambda: self.judge.judge(name_a, name_b),
                    self.config.ai_policy,
                    limiter=self.limiter,
                    cancel_token=cancel_token,
                )
            except OracleCallFailure as exc:
                failed += 1
                pair.ai_error = exc.message
                judgment = AIJudgment(
                    is_duplicate=False,
                    confidence=AI_FAILURE_CONFIDENCE,
                    reasoning=f"AI analysis failed: {exc.message}",
                )
                logger.warning(
                    "ai_judgment_failed",
                    record_a=pair.record_a.id,
                    record_b=pair.record_b.id,
                    error=exc.message,
                )

            made += 1
            pair.ai_judgment = judgment
            pair.is_duplicate = judgment.is_duplicate
            pair.judgement_method = METHOD_AI

        return made, failed

    @staticmethod
    def _processed_records(
        recs: Sequence[DuplicateRecord],
        pairs: Sequence[DuplicatePair],
        groups: Sequence[DuplicateGroup],
    ) -> list[ProcessedRecord]:
        group_of: dict[str, DuplicateGroup] = {}
        for group in groups:
            for member in group.members:
                group_of[member.id] = group

        # Strongest pair per record, preferring pairs that were marked duplicate
        best: dict[str, DuplicatePair] = {}
        for pair in pairs:
            for rid in (pair.record_a.id, pair.record_b.id):
                current = best.get(rid)
                rank = (pair.is_duplicate, pair.similarity_score)
                if current is None or rank > (current.is_duplicate, current.similarity_score):
                    best[rid] = pair

        processed = []
        for record in recs:
            group = group_of.get(record.id)
            pair = best.get(record.id)
            is_dup = group is not None and group.canonical_id != record.id
            ai = pair.ai_judgment if pair else None
            processed.append(ProcessedRecord(
                id=record.id,
                name=record.name,
                is_potential_duplicate=is_dup,
                duplicate_of_id=group.canonical_id if is_dup else None,
                duplicate_of_name=group.canonical_name if is_dup else None,
                final_duplicate_score=pair.similarity_score if pair else 0.0,
                judgement_method=pair.judgement_method if pair else METHOD_LOW,
                ai_judgement_is_duplicate=ai.is_duplicate if ai else None,
                ai_judgement_reasoning=ai.reasoning if ai else None,
                duplicate_group_id=group.group_id if group else "",
            ))
        return processed


async def detect_duplicates(
    records: Iterable[DuplicateRecord | Mapping[str, Any]],
    config: DuplicateDetectionConfig | None = None,
    judge: DuplicateJudge | None = None,
    cancel_token: CancellationToken | None = None,
) -> DuplicateDetectionResult:
    """Quick detection run with a throwaway engine."""
    engine = DuplicateDetectionEngine(config=config, judge=judge)
    return await engine.detect_duplicates(records, cancel_token=cancel_token)
