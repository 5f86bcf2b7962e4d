"""
Tests for the duplicate tiering engine.
"""
import asyncio
import dataclasses

import pytest

from meridian.duplicates import (
    DuplicateDetectionConfig,
    DuplicateDetectionEngine,
    DuplicatePair,
    DuplicateRecord,
    classify_tier,
    detect_duplicates,
    normalize_for_duplicate_detection,
)
from meridian.duplicates.grouping import UnionFind, build_duplicate_groups
from meridian.errors import InputValidationError, OperationCancelled
from meridian.scheduling import CancellationToken
from meridian.similarity import SimilarityScores


def run(coro):
    return asyncio.run(coro)


class TestNormalizeForDuplicateDetection:
    """Comparison keys."""

    @pytest.mark.parametrize("raw, key", [
        ("Apple, Inc.", "APPLE"),
        ("Christa INC", "CHRISTA"),
        ("CHRISTA", "CHRISTA"),
        ("Smith & Jones Partners LLC", "SMITH JONES"),
        ("Acme Co. Ltd.", "ACME"),
        ("Café Olé", "CAFE OLE"),
        ("", ""),
    ])
    def test_keys(self, raw, key):
        assert normalize_for_duplicate_detection(raw) == key

    def test_business_word_alone_kept(self):
        """A lone entity word has nothing before it and is not stripped."""
        assert normalize_for_duplicate_detection("Company") == "BUSINESS"


class TestClassifyTier:
    """Score to tier."""

    def test_boundaries(self):
        assert classify_tier(85, 85, 60) == "High"
        assert classify_tier(60, 85, 60) == "Low"
        assert classify_tier(72.5, 85, 60) == "Ambiguous"

    def test_monotone_in_score(self):
        """A higher score never lands in a lower tier."""
        rank = {"Low": 0, "Ambiguous": 1, "High": 2}
        tiers = [rank[classify_tier(s / 2, 85, 60)] for s in range(0, 201)]
        assert tiers == sorted(tiers)

    def test_raising_threshold_keeps_high_pairs_high(self):
        """A pair above the raised threshold stays High."""
        assert classify_tier(95, 85, 60) == classify_tier(95, 90, 60) == "High"


class TestConfig:
    """Threshold validation."""

    @pytest.mark.parametrize("high, low", [(60, 85), (70, 70), (101, 60), (85, -1)])
    def test_invalid_thresholds(self, high, low):
        with pytest.raises(InputValidationError):
            DuplicateDetectionConfig(high_threshold=high, low_threshold=low)


class TestAlgorithmicTiers:
    """High and Low pairs decided without the judge."""

    def test_suffix_variant_is_high_duplicate(self, no_ai_config):
        result = run(detect_duplicates(
            [{"id": "1", "name": "Christa INC"}, {"id": "2", "name": "CHRISTA"}],
            config=no_ai_config,
        ))
        first, second = result.processed_records
        assert first.is_potential_duplicate is False
        assert second.is_potential_duplicate is True
        assert second.duplicate_of_id == "1"
        assert second.duplicate_of_name == "Christa INC"
        assert second.judgement_method == "Algorithmic-High"
        assert second.final_duplicate_score == 100.0
        assert result.statistics.high_confidence_matches == 1
        assert result.statistics.ai_judgments_made == 0

    def test_unrelated_pair_dropped(self, no_ai_config):
        result = run(detect_duplicates(
            [{"id": "1", "name": "Apple"}, {"id": "2", "name": "Microsoft"}],
            config=no_ai_config,
        ))
        assert result.pairs == ()
        assert result.duplicate_groups == ()
        assert result.statistics.low_confidence_matches == 1
        assert not any(r.is_potential_duplicate for r in result.processed_records)

    def test_group_and_canonical(self, no_ai_config):
        result = run(detect_duplicates(
            [
                {"id": "a", "name": "Acme Widgets"},
                {"id": "b", "name": "ACME WIDGETS LLC"},
                {"id": "c", "name": "Zeta Partners"},
                {"id": "d", "name": "Acme Widgets, Inc."},
            ],
            config=no_ai_config,
        ))
        assert len(result.duplicate_groups) == 1
        group = result.duplicate_groups[0]
        assert group.group_id == "group-a"
        assert group.canonical_id == "a"
        assert [m.id for m in group.members] == ["a", "b", "d"]
        by_id = {r.id: r for r in result.processed_records}
        assert by_id["c"].duplicate_group_id == ""
        assert by_id["d"].duplicate_of_id == "a"

    def test_three_way_suffix_group(self, no_ai_config):
        result = run(detect_duplicates(
            [
                {"id": "1", "name": "Christa INC"},
                {"id": "2", "name": "CHRISTA"},
                {"id": "3", "name": "Christa"},
            ],
            config=no_ai_config,
        ))
        assert [set(g.member_ids) for g in result.duplicate_groups] == [{"1", "2", "3"}]
        assert result.duplicate_groups[0].canonical_id == "1"
        assert [r.is_potential_duplicate for r in result.processed_records] == [False, True, True]
        assert result.statistics.duplicates_found == 2

    def test_legal_forms_group_apart_from_other_company(self, no_ai_config):
        """Apple Inc / Corporation / LLC group together; Microsoft Corp stays alone."""
        result = run(detect_duplicates(
            [
                {"id": "a", "name": "Apple Inc"},
                {"id": "b", "name": "Apple Corporation"},
                {"id": "c", "name": "Apple LLC"},
                {"id": "m", "name": "Microsoft Corp"},
            ],
            config=no_ai_config,
        ))
        assert [set(g.member_ids) for g in result.duplicate_groups] == [{"a", "b", "c"}]
        by_id = {r.id: r for r in result.processed_records}
        assert by_id["m"].is_potential_duplicate is False
        assert by_id["m"].duplicate_group_id == ""

    def test_payee_field_aliases(self, no_ai_config):
        """payee_id / payee_name records are accepted."""
        result = run(detect_duplicates(
            [{"payee_id": 7, "payee_name": "Christa"}, {"payee_id": 8, "payee_name": "Christa LLC"}],
            config=no_ai_config,
        ))
        assert result.processed_records[1].duplicate_of_id == "7"

    def test_empty_input(self, no_ai_config):
        result = run(detect_duplicates([], config=no_ai_config))
        assert result.processed_records == ()
        assert result.statistics.total_processed == 0

    def test_rejects_repeated_ids(self, no_ai_config):
        with pytest.raises(InputValidationError, match="Duplicate record id"):
            run(detect_duplicates([{"id": "1", "name": "A"}, {"id": "1", "name": "B"}], config=no_ai_config))

    @pytest.mark.parametrize("records", [None, "Christa", {"id": "1", "name": "Christa"}])
    def test_rejects_non_list(self, no_ai_config, records):
        with pytest.raises(InputValidationError):
            run(detect_duplicates(records, config=no_ai_config))

    def test_rejects_record_without_name(self, no_ai_config):
        with pytest.raises(InputValidationError):
            run(detect_duplicates([{"id": "1"}], config=no_ai_config))

    def test_blocking_path_finds_same_pairs(self, no_ai_config):
        """Above the exhaustive limit, blocked candidates still find the duplicates."""
        records = [
            {"id": "1", "name": "Christa INC"},
            {"id": "2", "name": "Microsoft"},
            {"id": "3", "name": "CHRISTA"},
            {"id": "4", "name": "Apple"},
        ]
        blocked = dataclasses.replace(no_ai_config, exhaustive_pair_limit=1)
        exhaustive = run(detect_duplicates(records, config=no_ai_config))
        via_blocking = run(detect_duplicates(records, config=blocked))
        assert [g.member_ids for g in via_blocking.duplicate_groups] == [
            g.member_ids for g in exhaustive.duplicate_groups
        ]
        assert via_blocking.statistics.pairs_evaluated < exhaustive.statistics.pairs_evaluated


AMBIGUOUS_RECORDS = [{"id": "1", "name": "Acme Widgets"}, {"id": "2", "name": "Acme Gadgets"}]


class TestAIJudgment:
    """Only Ambiguous pairs reach the judge."""

    def test_judge_decides_ambiguous_pair(self, ai_config, fake_judge):
        judge = fake_judge(is_duplicate=True)
        result = run(detect_duplicates(AMBIGUOUS_RECORDS, config=ai_config, judge=judge))
        assert judge.calls == [("Acme Widgets", "Acme Gadgets")]
        pair = result.pairs[0]
        assert pair.confidence_tier == "Ambiguous"
        assert pair.judgement_method == "AI Judgment"
        assert pair.is_duplicate is True
        second = result.processed_records[1]
        assert second.is_potential_duplicate is True
        assert second.ai_judgement_is_duplicate is True
        assert second.ai_judgement_reasoning == "fake judge"
        assert result.statistics.ai_judgments_made == 1

    def test_judge_rejection(self, ai_config, fake_judge):
        result = run(detect_duplicates(AMBIGUOUS_RECORDS, config=ai_config, judge=fake_judge(is_duplicate=False)))
        assert result.duplicate_groups == ()
        assert result.processed_records[1].is_potential_duplicate is False
        assert result.processed_records[1].judgement_method == "AI Judgment"

    def test_high_pairs_never_judged(self, fake_judge):
        judge = fake_judge()
        run(detect_duplicates(
            [{"id": "1", "name": "Christa INC"}, {"id": "2", "name": "CHRISTA"}],
            config=DuplicateDetectionConfig(ai_call_delay_seconds=0.0),
            judge=judge,
        ))
        assert judge.calls == []

    def test_judge_failure_degrades_to_not_duplicate(self, ai_config, fake_judge):
        """A failed judgment marks the pair not-duplicate at confidence 50."""
        result = run(detect_duplicates(AMBIGUOUS_RECORDS, config=ai_config, judge=fake_judge(fail=True)))
        pair = result.pairs[0]
        assert pair.is_duplicate is False
        assert pair.judgement_method == "AI Judgment"
        assert pair.ai_judgment.confidence == 50
        assert pair.ai_judgment.reasoning.startswith("AI analysis failed:")
        assert pair.ai_error
        assert result.statistics.ai_judgment_failures == 1

    def test_ai_disabled(self, ai_config, fake_judge):
        """With judgment off, Ambiguous pairs are not duplicates."""
        judge = fake_judge()
        config = dataclasses.replace(ai_config, enable_ai_judgment=False)
        result = run(detect_duplicates(AMBIGUOUS_RECORDS, config=config, judge=judge))
        assert judge.calls == []
        assert result.pairs[0].is_duplicate is False
        assert result.pairs[0].judgement_method == "Algorithmic-Low"

    def test_cancel_before_judging(self, ai_config, fake_judge):
        async def go():
            token = CancellationToken()
            token.cancel()
            engine = DuplicateDetectionEngine(config=ai_config, judge=fake_judge())
            await engine.detect_duplicates(AMBIGUOUS_RECORDS, cancel_token=token)

        with pytest.raises(OperationCancelled):
            run(go())


def _pair(a, b, score, is_duplicate=True):
    scores = SimilarityScores(score, score, score, score, False, False, score)
    return DuplicatePair(
        record_a=a, record_b=b, scores=scores, confidence_tier="High",
        is_duplicate=is_duplicate, judgement_method="Algorithmic-High",
    )


class TestGrouping:
    """Union-find grouping."""

    def test_transitive(self):
        """A~B and B~C put A, B and C in one group."""
        a, b, c = (DuplicateRecord(i, i.upper()) for i in "abc")
        groups = build_duplicate_groups([a, b, c], [_pair(a, b, 90), _pair(b, c, 88)])
        assert len(groups) == 1
        assert [m.id for m in groups[0].members] == ["a", "b", "c"]
        assert groups[0].canonical_id == "a"

    def test_non_duplicate_pairs_ignored(self):
        a, b = DuplicateRecord("a", "A"), DuplicateRecord("b", "B")
        assert build_duplicate_groups([a, b], [_pair(a, b, 70, is_duplicate=False)]) == []

    def test_groups_sorted_by_average_score(self):
        recs = [DuplicateRecord(i, i) for i in "abcd"]
        groups = build_duplicate_groups(recs, [_pair(recs[0], recs[1], 86), _pair(recs[2], recs[3], 99)])
        assert [g.canonical_id for g in groups] == ["c", "a"]

    def test_union_find(self):
        uf = UnionFind()
        assert uf.union(1, 2) is True
        assert uf.union(2, 1) is False
        uf.union(3, 4)
        assert sorted(map(sorted, uf.get_clusters().values())) == [[1, 2], [3, 4]]
